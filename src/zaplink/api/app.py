"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from zaplink.api.routes import router
from zaplink.application.connection.machine import SessionStateMachine
from zaplink.application.delivery import DeliveryManager
from zaplink.config.settings import Settings, get_settings
from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.domain.protocols.transport import TransportAdapter
from zaplink.infra.credentials import create_credential_store
from zaplink.infra.transport import create_transport
from zaplink.observability.logging import configure_logging, get_logger
from zaplink.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    machine: SessionStateMachine = app.state.machine

    machine.start_loop()
    if settings.session_autostart:
        await machine.start()
    logger.info(
        "service_started",
        extra={"environment": settings.environment, "state": machine.get_status().state.value},
    )
    try:
        yield
    finally:
        await machine.shutdown()
        logger.info("service_stopped")


def create_app(
    settings: Settings | None = None,
    transport: TransportAdapter | None = None,
    credential_store: CredentialStoreProtocol | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI.

    Transporte e store podem ser injetados (transporte real ou testes);
    caso contrário são criados conforme settings.
    """
    settings = settings or get_settings()
    configure_logging(
        settings.log_level,
        settings.service_name,
        log_format=settings.log_format,
        session_id=settings.session_id,
    )

    validation_errors = settings.validate_all()
    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    transport = transport or create_transport(settings)
    credential_store = credential_store or create_credential_store(settings)
    machine = SessionStateMachine(transport, credential_store, settings)

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)

    app.state.settings = settings
    app.state.transport = transport
    app.state.credential_store = credential_store
    app.state.machine = machine
    app.state.delivery_manager = DeliveryManager(machine, transport, settings)

    return app


def main() -> None:
    """Entry point `zaplink` (servidor uvicorn)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.http_host, port=settings.http_port)
