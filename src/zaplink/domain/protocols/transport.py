"""Protocolo do adaptador de transporte (fronteira com a biblioteca externa).

O transporte implementa o protocolo do serviço de mensagens; o núcleo só
conhece open/send/close e o fluxo de eventos. Eventos são entregues ao
`sink` recebido em open(); cada open() recebe um sink novo, ligado à geração
corrente do SessionStateMachine, de modo que eventos de conexões antigas são
descartados.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from zaplink.domain.connection.events import TransportEvent

EventSink = Callable[[TransportEvent], Awaitable[None]]


class TransportAdapter(ABC):
    """Contrato mínimo do transporte."""

    @abstractmethod
    async def open(self, credentials: dict[str, Any] | None, sink: EventSink) -> None:
        """Abre a conexão.

        Raises:
            TransportCredentialsError: credenciais malformadas/ausentes
            TransportError: demais falhas (tratadas como transitórias)
        """
        ...

    @abstractmethod
    async def send(self, target: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Envia payload ao destino (JID). Pode levantar qualquer erro de transporte."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Fecha a conexão. Idempotente."""
        ...

    @property
    def is_open(self) -> bool:
        """True se há uma conexão (autenticada ou não) aberta."""
        return False

    @property
    def can_send(self) -> bool:
        """True se a primitiva de envio parece funcional (modo degradado)."""
        return False
