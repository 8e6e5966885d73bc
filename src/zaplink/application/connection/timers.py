"""Timers do loop de sessão.

Um timer é uma task que dorme e posta TimerFired na mailbox. Cada timer
carrega (geração, token): o loop só aplica o disparo se ambos ainda forem os
atuais, então um timer cancelado que já tenha postado o evento é inofensivo.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from zaplink.domain.connection.events import TimerFired, TimerKind
from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

PostFn = Callable[[TimerFired], Awaitable[None]]


class TimerSet:
    """No máximo um timer ativo por TimerKind."""

    def __init__(self, post: PostFn) -> None:
        self._post = post
        self._tasks: dict[TimerKind, asyncio.Task[None]] = {}
        self._tokens: dict[TimerKind, int] = {}
        self._counter = 0

    def schedule(self, kind: TimerKind, delay_seconds: float, generation: int) -> int:
        """(Re)agenda timer; substitui o anterior do mesmo tipo."""
        self.cancel(kind)
        self._counter += 1
        token = self._counter
        self._tokens[kind] = token
        self._tasks[kind] = asyncio.create_task(
            self._fire_after(TimerFired(kind, generation, token), delay_seconds),
            name=f"zaplink-timer-{kind.value.lower()}",
        )
        logger.debug(
            "timer_scheduled",
            extra={"timer": kind.value, "delay_s": delay_seconds, "generation": generation},
        )
        return token

    def cancel(self, kind: TimerKind) -> None:
        self._tokens.pop(kind, None)
        task = self._tasks.pop(kind, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all(self) -> None:
        for kind in list(self._tasks):
            self.cancel(kind)

    def is_current(self, fired: TimerFired) -> bool:
        return self._tokens.get(fired.kind) == fired.token

    def consume(self, fired: TimerFired) -> None:
        """Marca o disparo como aplicado (token deixa de valer)."""
        if self.is_current(fired):
            self._tokens.pop(fired.kind, None)
            self._tasks.pop(fired.kind, None)

    def pending(self) -> list[str]:
        return sorted(kind.value for kind in self._tokens)

    async def _fire_after(self, fired: TimerFired, delay_seconds: float) -> None:
        await asyncio.sleep(delay_seconds)
        await self._post(fired)
