"""Cenários ponta a ponta do ciclo de vida da sessão (transporte loopback)."""

from __future__ import annotations

import asyncio
import logging

import pytest

from tests.helpers.session import (
    RecordingListener,
    RecordingScheduler,
    paired_credentials,
    wait_for_state,
    wait_until,
)
from zaplink.application.connection.machine import SessionStateMachine
from zaplink.application.reconnect import EXHAUSTED, ReconnectPolicy
from zaplink.config.settings import Settings
from zaplink.domain.connection.disconnect import DisconnectKind
from zaplink.domain.connection.events import ConnectionOpened, QrReceived
from zaplink.domain.connection.states import ConnectionState
from zaplink.infra.credentials import InMemoryCredentialStore
from zaplink.infra.transport import LoopbackTransport


def _state_changes(caplog: pytest.LogCaptureFixture) -> list[str]:
    return [
        r.to_state  # type: ignore[attr-defined]
        for r in caplog.records
        if r.message == "connection_state_changed"
    ]


class TestPairingFlow:
    """start → QR → pareamento confirmado."""

    @pytest.mark.asyncio
    async def test_qr_moves_to_awaiting_pairing(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        listener: RecordingListener,
    ) -> None:
        """Cenário A: qr("ABC") ⇒ AWAITING_PAIRING com QR disponível."""
        transport.auto_handshake = False
        await machine.start()
        assert machine.get_status().state == ConnectionState.INITIALIZING

        await transport.emit(QrReceived("ABC"))
        await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

        status = machine.get_status()
        assert status.has_qr is True
        assert machine.pairing_challenge == "ABC"
        assert listener.of("qr") == ["ABC"]

    @pytest.mark.asyncio
    async def test_opened_moves_to_open_and_fires_ready_once(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        listener: RecordingListener,
    ) -> None:
        """Cenário B: connectionOpened ⇒ OPEN, contador 0, ready uma única vez."""
        transport.auto_handshake = False
        await machine.start()
        await transport.emit(QrReceived("ABC"))
        await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

        await transport.emit(ConnectionOpened())
        await wait_for_state(machine, ConnectionState.OPEN)
        await transport.emit(ConnectionOpened())
        await asyncio.sleep(0.02)

        status = machine.get_status()
        assert status.state == ConnectionState.OPEN
        assert status.reconnect_attempts == 0
        assert status.has_qr is False
        assert status.ready_since is not None
        assert machine.pairing_challenge is None
        assert len(listener.of("ready")) == 1

    @pytest.mark.asyncio
    async def test_scan_persists_credentials(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
    ) -> None:
        """credentialsUpdated é persistido antes do OPEN."""
        await machine.start()
        await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

        await transport.pair()
        await wait_for_state(machine, ConnectionState.OPEN)

        saved = store.load("default")
        assert saved is not None
        assert saved.identity == "5511999990000:1@s.whatsapp.net"
        assert "pre-key" in saved.keys

    @pytest.mark.asyncio
    async def test_persisted_credentials_skip_qr(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        store.save(paired_credentials())
        await machine.start()
        await wait_for_state(machine, ConnectionState.OPEN)

        assert listener.of("qr") == []
        assert transport.open_calls[0]["creds"]["noiseKey"] == "abc"


class TestAuthExpired:
    @pytest.mark.asyncio
    async def test_401_wipes_credentials_and_forces_fresh_pairing(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Cenário C: close(401) ⇒ credenciais apagadas, RECONNECTING → INITIALIZING, QR novo."""
        store.save(paired_credentials())
        await machine.start()
        await wait_for_state(machine, ConnectionState.OPEN)

        with caplog.at_level(logging.INFO):
            await transport.drop(401)
            await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

        assert store.exists("default") is False
        assert transport.open_calls[-1] is None

        changes = _state_changes(caplog)
        start = changes.index("RECONNECTING")
        assert changes[start : start + 3] == ["RECONNECTING", "INITIALIZING", "AWAITING_PAIRING"]

        reason, will_retry = listener.of("connection_lost")[0]
        assert reason.kind == DisconnectKind.AUTH_EXPIRED
        assert will_retry is True
        assert listener.of("session_cleared") == ["AUTH_EXPIRED:401"]
        # QR novo, emitido pela nova conexão
        assert listener.of("qr") == [machine.pairing_challenge]


class TestProtocolRejected:
    @pytest.mark.asyncio
    async def test_405_backoff_grows_then_fails_after_max_attempts(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        """Cenário D: closes 405 consecutivos ⇒ delays crescentes pelo multiplicador; depois FAILED."""
        policy = ReconnectPolicy(
            max_attempts=3, fast_tier_seconds=0.01, slow_tier_seconds=0.02
        )
        scheduler = RecordingScheduler(policy)
        machine = SessionStateMachine(
            transport, store, settings, scheduler=scheduler, listeners=[listener]
        )
        store.save(paired_credentials())
        try:
            await machine.start()
            await wait_for_state(machine, ConnectionState.OPEN)
            transport.auto_handshake = False

            for i in range(3):
                await transport.drop(405, "Method Not Allowed")
                await wait_until(lambda i=i: len(transport.open_calls) == i + 2)
                assert machine.get_status().state == ConnectionState.INITIALIZING

            delays = scheduler.delays
            assert len(delays) == 3
            assert all(a < b for a, b in zip(delays, delays[1:], strict=False))
            for attempt, delay in enumerate(delays):
                tier = 0.01 if attempt < 2 else 0.02
                assert delay == pytest.approx((attempt + 1) * tier * 2.0)

            await transport.drop(405, "Method Not Allowed")
            await wait_for_state(machine, ConnectionState.FAILED)

            assert scheduler.delays[-1] is EXHAUSTED
            assert store.exists("default") is False
            failure = listener.of("permanent_failure")
            assert len(failure) == 1
            assert "PROTOCOL_REJECTED:405" in failure[0]
            assert "PROTOCOL_REJECTED:405" in machine.get_status().status_message
        finally:
            await machine.shutdown()


class TestTransientReconnect:
    @pytest.mark.asyncio
    async def test_counter_resets_after_open(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        """Após OPEN o próximo backoff recomeça do attempt 0."""
        scheduler = RecordingScheduler(
            ReconnectPolicy(fast_tier_seconds=0.01, slow_tier_seconds=0.02)
        )
        machine = SessionStateMachine(
            transport, store, settings, scheduler=scheduler, listeners=[listener]
        )
        store.save(paired_credentials())
        try:
            await machine.start()
            await wait_for_state(machine, ConnectionState.OPEN)

            await transport.drop(500, "Stream Errored")
            await wait_until(lambda: len(listener.of("ready")) == 2)
            await transport.drop(500, "Stream Errored")
            await wait_until(lambda: len(listener.of("ready")) == 3)

            assert [attempt for attempt, _, _ in scheduler.calls] == [0, 0]
            assert machine.get_status().reconnect_attempts == 0
            assert store.exists("default") is True
            assert [will_retry for _, will_retry in listener.of("connection_lost")] == [
                True,
                True,
            ]
        finally:
            await machine.shutdown()

    @pytest.mark.asyncio
    async def test_status_reports_reconnecting(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
    ) -> None:
        scheduler = RecordingScheduler(ReconnectPolicy(fast_tier_seconds=10.0))
        machine = SessionStateMachine(transport, store, settings, scheduler=scheduler)
        store.save(paired_credentials())
        try:
            await machine.start()
            await wait_for_state(machine, ConnectionState.OPEN)
            await transport.drop(None, "Connection Closed")
            await wait_for_state(machine, ConnectionState.RECONNECTING)

            status = machine.get_status()
            assert status.reconnect_attempts == 1
            assert "Reconectando (tentativa 1/5)" in status.status_message
            assert machine.get_diagnostics().next_reconnect_delay_seconds == 10.0
            assert machine.get_diagnostics().pending_timers == ["RECONNECT"]
        finally:
            await machine.shutdown()


class TestLoggedOut:
    @pytest.mark.asyncio
    async def test_logout_is_terminal_until_reset(
        self,
        machine: SessionStateMachine,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        store.save(paired_credentials())
        await machine.start()
        await wait_for_state(machine, ConnectionState.OPEN)

        await transport.drop(401, "Stream Errored (logged out)")
        await wait_for_state(machine, ConnectionState.LOGGED_OUT)

        assert listener.of("logged_out") == [None]
        _, will_retry = listener.of("connection_lost")[0]
        assert will_retry is False
        assert store.exists("default") is False
        assert "nova leitura do QR code" in machine.get_status().status_message

        opens = len(transport.open_calls)
        await machine.start()
        assert machine.get_status().state == ConnectionState.LOGGED_OUT
        assert len(transport.open_calls) == opens

        await machine.reset_session()
        assert machine.get_status().state == ConnectionState.IDLE
        await machine.start()
        await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

    @pytest.mark.asyncio
    async def test_logout_can_keep_credentials(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
    ) -> None:
        settings = settings.model_copy(update={"logged_out_wipes_credentials": False})
        machine = SessionStateMachine(transport, store, settings)
        store.save(paired_credentials())
        try:
            await machine.start()
            await wait_for_state(machine, ConnectionState.OPEN)
            await transport.drop(None, "logged out")
            await wait_for_state(machine, ConnectionState.LOGGED_OUT)
            assert store.exists("default") is True
        finally:
            await machine.shutdown()


class TestPairingTimeout:
    @pytest.mark.asyncio
    async def test_pairing_timeout_is_transient_disconnect(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        settings = settings.model_copy(update={"pairing_timeout_seconds": 0.05})
        machine = SessionStateMachine(transport, store, settings, listeners=[listener])
        transport.auto_handshake = False
        try:
            await machine.start()
            await transport.emit(QrReceived("QR-1"))
            await wait_for_state(machine, ConnectionState.AWAITING_PAIRING)

            await wait_until(lambda: len(listener.of("connection_lost")) == 1)
            reason, will_retry = listener.of("connection_lost")[0]
            assert reason.kind == DisconnectKind.TRANSIENT
            assert reason.cause == "pairing timeout"
            assert will_retry is True
            assert machine.pairing_challenge is None
            # Reabre após o backoff
            await wait_until(lambda: len(transport.open_calls) == 2)
        finally:
            await machine.shutdown()

    @pytest.mark.asyncio
    async def test_new_qr_restarts_pairing_timer(
        self,
        settings: Settings,
        transport: LoopbackTransport,
        store: InMemoryCredentialStore,
        listener: RecordingListener,
    ) -> None:
        """O timeout conta a partir do último QR."""
        settings = settings.model_copy(update={"pairing_timeout_seconds": 0.3})
        machine = SessionStateMachine(transport, store, settings, listeners=[listener])
        transport.auto_handshake = False
        try:
            await machine.start()
            await transport.emit(QrReceived("QR-1"))
            await asyncio.sleep(0.2)
            await transport.emit(QrReceived("QR-2"))
            await asyncio.sleep(0.15)

            assert machine.get_status().state == ConnectionState.AWAITING_PAIRING
            assert listener.of("connection_lost") == []
            assert machine.pairing_challenge == "QR-2"
        finally:
            await machine.shutdown()
