"""Latência das operações de transporte (open/close/send)."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator

from zaplink.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(operation: str) -> Generator[None, None, None]:
    """Registra `component_latency` ao fim do bloco, inclusive em erro/timeout.

    Ex.: `with timed("transport_open"): await asyncio.wait_for(...)`; um open
    que estoura o timeout aparece com elapsed_ms próximo ao limite.
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            "component_latency",
            extra={
                "component": operation,
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
