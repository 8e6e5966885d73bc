"""Snapshots expostos pelo SessionStateMachine (status, diagnóstico, pareamento).

Modelos imutáveis: leitores (API, DeliveryManager) recebem sempre um
snapshot consistente, reconstruído pelo loop ao fim de cada evento.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from zaplink.domain.connection.states import ConnectionState


class SessionStatus(BaseModel):
    """Estado atual da sessão."""

    model_config = ConfigDict(frozen=True)

    state: ConnectionState
    has_qr: bool = False
    ready_since: datetime | None = None
    reconnect_attempts: int = 0
    status_message: str = ""

    @property
    def is_ready(self) -> bool:
        return self.state == ConnectionState.OPEN


class SessionDiagnostics(BaseModel):
    """Visão detalhada para suporte/observabilidade.

    Não contém material de credenciais nem o conteúdo do QR.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    state: ConnectionState
    generation: int
    has_qr: bool
    qr_age_seconds: float | None = None
    ready_since: datetime | None = None
    reconnect_attempts: int = 0
    max_reconnect_attempts: int = 0
    next_reconnect_delay_seconds: float | None = None
    last_disconnect: str | None = None
    last_error: str | None = None
    init_failure_hint: str | None = None
    credentials_present: bool = False
    credentials_location: str | None = None
    transport_open: bool = False
    transport_can_send: bool = False
    last_inbound_at: datetime | None = None
    probably_functional: bool = False
    pending_timers: list[str] = Field(default_factory=list)
    mailbox_depth: int = 0
    platform: str = ""
    python_version: str = ""
    timestamp: datetime


class PairingResult(BaseModel):
    """Resultado de request_new_pairing()."""

    success: bool
    qr: str | None = None
    error: str | None = None
    state: ConnectionState
    waited_seconds: float = 0.0


def status_message(
    state: ConnectionState,
    *,
    reconnect_attempts: int = 0,
    max_attempts: int = 0,
    last_error: str | None = None,
) -> str:
    """Texto curto para UI (PT-BR)."""
    if state == ConnectionState.IDLE:
        return "Sessão inativa"
    if state == ConnectionState.INITIALIZING:
        return "Conectando ao WhatsApp..."
    if state == ConnectionState.AWAITING_PAIRING:
        return "QR code disponível: leia com o aparelho"
    if state == ConnectionState.OPEN:
        return "Conectado"
    if state == ConnectionState.CLOSING:
        return "Encerrando conexão"
    if state == ConnectionState.RECONNECTING:
        return f"Reconectando (tentativa {reconnect_attempts}/{max_attempts})"
    if state == ConnectionState.LOGGED_OUT:
        return "Sessão encerrada no aparelho: nova leitura do QR code necessária"
    return f"Falha permanente: {last_error or 'causa desconhecida'}"
