from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from tests.helpers.session import RecordingListener
from zaplink.application.connection.machine import SessionStateMachine
from zaplink.config.settings import Settings, get_settings
from zaplink.infra.credentials import InMemoryCredentialStore
from zaplink.infra.transport import LoopbackTransport


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    """Settings com tempos em milissegundos para testes rápidos."""
    return Settings(
        environment="development",
        credential_store_backend="memory",
        session_autostart=False,
        pairing_timeout_seconds=5.0,
        pairing_wait_timeout_seconds=0.5,
        reconnect_fast_tier_seconds=0.01,
        reconnect_slow_tier_seconds=0.02,
        delivery_readiness_grace_seconds=0.2,
        delivery_send_timeout_seconds=0.2,
        delivery_retry_delay_seconds=0.01,
    )


@pytest.fixture()
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def transport() -> LoopbackTransport:
    return LoopbackTransport()


@pytest.fixture()
def listener() -> RecordingListener:
    return RecordingListener()


@pytest_asyncio.fixture()
async def machine(
    settings: Settings,
    transport: LoopbackTransport,
    store: InMemoryCredentialStore,
    listener: RecordingListener,
) -> AsyncIterator[SessionStateMachine]:
    machine = SessionStateMachine(transport, store, settings, listeners=[listener])
    yield machine
    await machine.shutdown()
