"""Adaptadores de transporte e factory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from zaplink.domain.protocols.transport import TransportAdapter
from zaplink.infra.transport.loopback import LoopbackTransport
from zaplink.observability.logging import get_logger

if TYPE_CHECKING:
    from zaplink.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


def create_transport(settings: Settings) -> TransportAdapter:
    """Cria transporte conforme TRANSPORT_BACKEND.

    Transportes reais (biblioteca do serviço) são injetados diretamente em
    create_app(transport=...); aqui só existe o loopback de desenvolvimento.
    """
    backend = settings.transport_backend.lower()
    if backend == "loopback":
        if settings.is_production:
            logger.warning("LoopbackTransport em produção: nenhuma mensagem sai do processo")
        return LoopbackTransport()
    raise ValueError(f"Backend de transporte não reconhecido: {backend}")


__all__ = ["LoopbackTransport", "create_transport"]
