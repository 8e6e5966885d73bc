"""Contexto de correlação compartilhado entre HTTP, loop de sessão e envios."""

from __future__ import annotations

import contextlib
import uuid
from collections.abc import Iterator
from contextvars import ContextVar

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Retorna o correlation_id corrente (ou vazio)."""

    return _correlation_id.get()


def new_correlation_id() -> str:
    """Gera um correlation_id curto para operações fora de HTTP."""

    return uuid.uuid4().hex[:16]


@contextlib.contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Define correlation_id para o bloco (reaproveita o atual se existir).

    Usado pelo DeliveryManager: cada envio carrega um id rastreável nos logs
    mesmo quando chamado fora de uma request HTTP.
    """
    value = correlation_id or get_correlation_id() or new_correlation_id()
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)
