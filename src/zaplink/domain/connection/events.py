"""Eventos emitidos pelo transporte e eventos internos do loop de sessão.

Eventos de transporte chegam pelo sink entregue em TransportAdapter.open();
eventos internos (comandos, timers) são postados pelo próprio
SessionStateMachine. Todos passam pela mesma mailbox, em ordem de chegada.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TimerKind(StrEnum):
    """Timers agendados pelo loop de sessão."""

    PAIRING = "PAIRING"
    RECONNECT = "RECONNECT"


class CommandKind(StrEnum):
    """Comandos externos serializados pela mailbox."""

    START = "START"
    RESET = "RESET"
    REESTABLISH = "REESTABLISH"
    SHUTDOWN = "SHUTDOWN"


# === Eventos do transporte ===


@dataclass(frozen=True, slots=True)
class QrReceived:
    """Transporte emitiu (ou reemitiu) um QR de pareamento."""

    data: str


@dataclass(frozen=True, slots=True)
class ConnectionOpened:
    """Transporte confirmou a conexão autenticada."""


@dataclass(frozen=True, slots=True)
class ConnectionClosed:
    """Transporte encerrou a conexão."""

    error_code: int | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class CredentialsUpdated:
    """Transporte produziu novas credenciais (devem ser persistidas)."""

    credentials: dict[str, Any]


@dataclass(frozen=True, slots=True)
class MessageReceived:
    """Mensagem inbound recebida pelo transporte."""

    envelope: dict[str, Any]


TransportEvent = QrReceived | ConnectionOpened | ConnectionClosed | CredentialsUpdated | MessageReceived


# === Eventos internos ===


@dataclass(frozen=True, slots=True)
class TimerFired:
    """Timer disparado; só é aplicado se geração e token ainda forem os atuais."""

    kind: TimerKind
    generation: int
    token: int


@dataclass(slots=True)
class Command:
    """Comando externo; `done` é resolvido quando o loop termina de aplicá-lo."""

    kind: CommandKind
    done: asyncio.Future[None] | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Envelope:
    """Item da mailbox: evento + geração do transporte que o produziu."""

    event: Any
    generation: int | None = None
