"""Fan-out das notificações de ciclo de vida para os listeners registrados."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from zaplink.domain.connection.disconnect import DisconnectReason
from zaplink.domain.protocols.listener import SessionListener
from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class ListenerNotifier:
    """Entrega cada notificação a todos os listeners, em ordem de registro.

    Falha de um listener é registrada e não impede os demais.
    """

    def __init__(self, listeners: list[SessionListener] | None = None) -> None:
        self._listeners: list[SessionListener] = list(listeners or [])

    def add(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def qr_available(self, data: str) -> None:
        self._fanout("on_qr_available", data)

    def ready(self, timestamp: datetime) -> None:
        self._fanout("on_ready", timestamp)

    def connection_lost(self, reason: DisconnectReason, will_retry: bool) -> None:
        self._fanout("on_connection_lost", reason, will_retry)

    def logged_out(self) -> None:
        self._fanout("on_logged_out")

    def permanent_failure(self, reason: str) -> None:
        self._fanout("on_permanent_failure", reason)

    def session_cleared(self, reason: str) -> None:
        self._fanout("on_session_cleared", reason)

    def message_received(self, envelope: dict[str, Any]) -> None:
        self._fanout("on_message_received", envelope)

    def _fanout(self, method: str, *args: Any) -> None:
        for listener in list(self._listeners):
            callback = getattr(listener, method, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as e:
                logger.error(
                    "listener_failed",
                    extra={
                        "notification": method,
                        "listener": type(listener).__name__,
                        "error": type(e).__name__,
                    },
                )
