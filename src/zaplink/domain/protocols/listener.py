"""Notificações push do ciclo de vida da sessão para colaboradores (UI/API)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from zaplink.domain.connection.disconnect import DisconnectReason


class SessionListener:
    """Base com implementações vazias; sobrescreva apenas o necessário.

    Callbacks são chamados de dentro do loop de sessão e devem ser rápidos;
    exceções são registradas e nunca interrompem o loop.
    """

    def on_qr_available(self, data: str) -> None:
        """Novo QR disponível para leitura."""

    def on_ready(self, timestamp: datetime) -> None:
        """Conexão aberta e confirmada pelo transporte."""

    def on_connection_lost(self, reason: DisconnectReason, will_retry: bool) -> None:
        """Conexão perdida; will_retry indica reconexão agendada."""

    def on_logged_out(self) -> None:
        """Sessão encerrada remotamente; novo pareamento necessário."""

    def on_permanent_failure(self, reason: str) -> None:
        """Falha permanente; intervenção manual necessária."""

    def on_session_cleared(self, reason: str) -> None:
        """Credenciais apagadas (reset manual ou auth expirada)."""

    def on_message_received(self, envelope: dict[str, Any]) -> None:
        """Mensagem inbound recebida."""
