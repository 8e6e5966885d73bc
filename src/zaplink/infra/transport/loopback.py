"""Transporte loopback em processo (dev/testes).

Simula a biblioteca do serviço de mensagens:
- open() sem credenciais emite QR; com credenciais emite connectionOpened
- pair() simula a leitura do QR (credentialsUpdated + connectionOpened)
- falhas de open/send podem ser enfileiradas para cenários de erro

⚠️ NÃO use em produção (não fala com nenhum servidor).
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from typing import Any

from zaplink.domain.connection.events import (
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    MessageReceived,
    QrReceived,
    TransportEvent,
)
from zaplink.domain.errors import TransportError
from zaplink.domain.protocols.transport import EventSink, TransportAdapter
from zaplink.observability.logging import get_logger, mask_target

logger: logging.Logger = get_logger(__name__)


class LoopbackTransport(TransportAdapter):
    """Transporte scriptável; registra chamadas para inspeção."""

    def __init__(self, auto_handshake: bool = True, send_delay_seconds: float = 0.0) -> None:
        self.auto_handshake = auto_handshake
        self.send_delay_seconds = send_delay_seconds
        self.open_calls: list[dict[str, Any] | None] = []
        self.close_calls = 0
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.open_failures: deque[Exception] = deque()
        self.send_failures: deque[Exception] = deque()
        self._sink: EventSink | None = None
        self._open = False
        self._qr_counter = 0
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def can_send(self) -> bool:
        return self._open

    async def open(self, credentials: dict[str, Any] | None, sink: EventSink) -> None:
        self.open_calls.append(credentials)
        if self.open_failures:
            raise self.open_failures.popleft()

        self._sink = sink
        self._open = True
        logger.debug("loopback_open", extra={"has_credentials": credentials is not None})

        if self.auto_handshake:
            if credentials and credentials.get("creds"):
                self._schedule(ConnectionOpened())
            else:
                self._schedule(QrReceived(self._next_qr()))

    async def send(self, target: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        if self.send_delay_seconds:
            await asyncio.sleep(self.send_delay_seconds)
        if self.send_failures:
            raise self.send_failures.popleft()
        if not self._open:
            raise TransportError("Connection lost: loopback transport is closed")

        self.sent.append((target, payload))
        message_id = uuid.uuid4().hex[:20].upper()
        logger.debug("loopback_send", extra={"target": mask_target(target), "message_id": message_id})
        return {"key": {"id": message_id, "remoteJid": target}}

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False
        self._sink = None
        for task in list(self._pending):
            task.cancel()

    # === Helpers de simulação ===

    async def emit(self, event: TransportEvent) -> None:
        """Entrega evento ao sink corrente (ignorado se fechado)."""
        if self._sink is None:
            logger.debug("loopback_emit_dropped", extra={"event": type(event).__name__})
            return
        await self._sink(event)

    async def pair(self, device_id: str = "5511999990000:1@s.whatsapp.net") -> None:
        """Simula leitura do QR no aparelho."""
        await self.emit(
            CredentialsUpdated(
                {
                    "me": {"id": device_id},
                    "noiseKey": uuid.uuid4().hex,
                    "keys": {"pre-key": {"1": uuid.uuid4().hex}},
                }
            )
        )
        await self.emit(ConnectionOpened())

    async def drop(self, error_code: int | None = None, message: str = "") -> None:
        """Simula fechamento pelo servidor."""
        await self.emit(ConnectionClosed(error_code=error_code, message=message))

    async def deliver_inbound(self, envelope: dict[str, Any]) -> None:
        await self.emit(MessageReceived(envelope))

    def _next_qr(self) -> str:
        self._qr_counter += 1
        return f"loopback-qr-{self._qr_counter}-{uuid.uuid4().hex[:8]}"

    def _schedule(self, event: TransportEvent) -> None:
        task = asyncio.create_task(self.emit(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
