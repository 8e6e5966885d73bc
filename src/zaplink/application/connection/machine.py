"""SessionStateMachine: dono único do ciclo de vida da conexão.

Responsabilidades:
- Consumir a mailbox (eventos do transporte, timers e comandos) em uma única
  task; só ela muta estado
- Classificar desconexões e decidir reconexão/limpeza/falha
- Persistir credenciais a cada credentialsUpdated
- Publicar snapshots imutáveis (SessionStatus) e notificar listeners

Eventos do transporte chegam com a geração da conexão que os produziu; ao
fechar/reabrir o transporte a geração avança e eventos antigos são
descartados. Timers seguem a mesma regra (ver timers.py).
"""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
import time
from datetime import UTC, datetime
from typing import Any

from zaplink.application.connection.notifier import ListenerNotifier
from zaplink.application.connection.status import (
    PairingResult,
    SessionDiagnostics,
    SessionStatus,
    status_message,
)
from zaplink.application.connection.timers import TimerSet
from zaplink.application.reconnect import EXHAUSTED, ReconnectPolicy, ReconnectScheduler
from zaplink.config.settings import Settings, get_settings
from zaplink.domain.connection.disconnect import (
    DisconnectReason,
    classify_disconnect,
)
from zaplink.domain.connection.events import (
    Command,
    CommandKind,
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    Envelope,
    MessageReceived,
    QrReceived,
    TimerFired,
    TimerKind,
    TransportEvent,
)
from zaplink.domain.connection.states import (
    IN_FLIGHT_STATES,
    PAIRING_STATES,
    STARTABLE_STATES,
    TERMINAL_STATES,
    ConnectionState,
)
from zaplink.domain.connection.transitions import Trigger, validate_transition
from zaplink.domain.credentials import SessionCredentials
from zaplink.domain.errors import CredentialStoreError, TransportCredentialsError
from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.domain.protocols.listener import SessionListener
from zaplink.domain.protocols.transport import EventSink, TransportAdapter
from zaplink.observability.logging import get_logger
from zaplink.observability.timing import timed

logger: logging.Logger = get_logger(__name__)

# Estados em que a conexão corrente pode ser reestabelecida (close + reopen)
_REESTABLISH_STATES = PAIRING_STATES | {ConnectionState.OPEN}


def init_failure_hint(error_text: str) -> str:
    """Dica de diagnóstico para falhas em transport.open()."""
    text = error_text.lower()
    if "401" in text or "auth" in text or "unauthorized" in text:
        return "auth"
    if "timeout" in text or "timed out" in text:
        return "timeout"
    if any(token in text for token in ("econnreset", "enotfound", "network", "connection")):
        return "network"
    if "session" in text or "creds" in text:
        return "session"
    return "unknown"


def _now() -> datetime:
    return datetime.now(tz=UTC)


class SessionStateMachine:
    """Máquina de estados da sessão (single-writer via mailbox).

    Uso típico:
        machine = SessionStateMachine(transport, store, settings)
        await machine.start()
        ...
        await machine.shutdown()
    """

    def __init__(
        self,
        transport: TransportAdapter,
        credential_store: CredentialStoreProtocol,
        settings: Settings | None = None,
        scheduler: ReconnectScheduler | None = None,
        listeners: list[SessionListener] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._store = credential_store
        self._scheduler = scheduler or ReconnectScheduler(
            ReconnectPolicy.from_settings(self._settings)
        )
        self._notifier = ListenerNotifier(listeners)
        self._session_id = self._settings.session_id

        self._mailbox: asyncio.Queue[Envelope] = asyncio.Queue(
            maxsize=self._settings.mailbox_max_size
        )
        self._loop_task: asyncio.Task[None] | None = None
        self._stopping = False
        # True a partir de shutdown(); só start()/reset_session() reabrem o loop
        self._closed = False
        self._shutting_down = 0
        self._timers = TimerSet(self._post_timer)

        # Estado mutável (somente a task do loop escreve)
        self._state = ConnectionState.IDLE
        self._generation = 0
        self._attempts = 0
        self._credentials: SessionCredentials | None = None
        self._qr: str | None = None
        self._qr_since: float | None = None
        self._ready_since: datetime | None = None
        self._last_reason: DisconnectReason | None = None
        self._last_error: str | None = None
        self._init_hint: str | None = None
        self._next_delay: float | None = None
        self._last_inbound_at: datetime | None = None
        self._inbound_while_not_open = False

        self._ready_event = asyncio.Event()
        self._qr_event = asyncio.Event()
        self._status = self._build_status()

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_ready(self) -> bool:
        return self._status.is_ready

    @property
    def pairing_challenge(self) -> str | None:
        """QR corrente (somente em AWAITING_PAIRING)."""
        return self._qr

    @property
    def transport_can_send(self) -> bool:
        return self._transport.can_send

    def add_listener(self, listener: SessionListener) -> None:
        self._notifier.add(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        self._notifier.remove(listener)

    def get_status(self) -> SessionStatus:
        return self._status

    def get_diagnostics(self) -> SessionDiagnostics:
        return SessionDiagnostics(
            session_id=self._session_id,
            state=self._state,
            generation=self._generation,
            has_qr=self._qr is not None,
            qr_age_seconds=self._qr_age(),
            ready_since=self._ready_since,
            reconnect_attempts=self._attempts,
            max_reconnect_attempts=self._scheduler.max_attempts,
            next_reconnect_delay_seconds=self._next_delay,
            last_disconnect=self._last_reason.describe() if self._last_reason else None,
            last_error=self._last_error,
            init_failure_hint=self._init_hint,
            credentials_present=self._credentials is not None,
            credentials_location=self._store.location(self._session_id),
            transport_open=self._transport.is_open,
            transport_can_send=self._transport.can_send,
            last_inbound_at=self._last_inbound_at,
            probably_functional=self._probably_functional(),
            pending_timers=self._timers.pending(),
            mailbox_depth=self._mailbox.qsize(),
            platform=platform.platform(),
            python_version=sys.version.split()[0],
            timestamp=_now(),
        )

    def start_loop(self) -> None:
        """Garante a task consumidora da mailbox (idempotente).

        Após shutdown() o loop não é recriado até um novo start() ou
        reset_session().
        """
        if self._closed:
            return
        if self._loop_task is None or self._loop_task.done():
            self._stopping = False
            self._loop_task = asyncio.create_task(self._run(), name="zaplink-session-loop")

    async def start(self) -> None:
        """Inicia a sessão (no-op registrado se já em andamento)."""
        await self._submit(CommandKind.START, reopen=True)

    async def reset_session(self) -> None:
        """Apaga credenciais e volta a IDLE a partir de qualquer estado."""
        await self._submit(CommandKind.RESET, reopen=True)

    async def reestablish(self) -> None:
        """Fecha e reabre o transporte mantendo credenciais."""
        await self._submit(CommandKind.REESTABLISH)

    async def shutdown(self) -> None:
        """Encerra a conexão preservando credenciais e para o loop.

        Comandos que chegam durante o encerramento são descartados (seus
        chamadores retornam sem efeito).
        """
        self._closed = True
        task = self._loop_task
        if task is None or task.done():
            self._timers.cancel_all()
            return
        self._shutting_down += 1
        try:
            await self._submit(CommandKind.SHUTDOWN)
            await task
        finally:
            self._shutting_down -= 1

    async def wait_until_ready(self, timeout: float) -> bool:
        """Espera (event-driven) até OPEN ou timeout."""
        if self.is_ready:
            return True
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout)
        except TimeoutError:
            return False
        return self.is_ready

    async def wait_for_qr(self, timeout: float) -> str | None:
        if self._qr is not None:
            return self._qr
        try:
            await asyncio.wait_for(self._qr_event.wait(), timeout)
        except TimeoutError:
            return None
        return self._qr

    async def request_new_pairing(self, timeout: float | None = None) -> PairingResult:
        """Força pareamento novo: reset + start + espera pelo primeiro QR."""
        timeout = self._settings.pairing_wait_timeout_seconds if timeout is None else timeout
        started = time.monotonic()

        await self.reset_session()
        await self.start()
        qr = await self.wait_for_qr(timeout)

        waited = round(time.monotonic() - started, 3)
        state = self.get_status().state
        if qr is not None:
            logger.info("pairing_qr_ready", extra={"waited_s": waited})
            return PairingResult(success=True, qr=qr, state=state, waited_seconds=waited)

        error = (
            self._last_error
            if state in TERMINAL_STATES and self._last_error
            else "QR code não foi gerado dentro do tempo limite"
        )
        logger.warning("pairing_qr_timeout", extra={"waited_s": waited, "state": state.value})
        return PairingResult(success=False, error=error, state=state, waited_seconds=waited)

    # ------------------------------------------------------------------
    # Mailbox
    # ------------------------------------------------------------------

    async def _submit(self, kind: CommandKind, reopen: bool = False) -> None:
        # Reabrir só depois que o loop anterior terminou; durante o shutdown
        # o comando entra na fila e é descartado na saída do loop.
        if reopen and not self._shutting_down and (
            self._loop_task is None or self._loop_task.done()
        ):
            self._closed = False
        self.start_loop()
        if self._loop_task is None or self._loop_task.done():
            logger.info("command_ignored_loop_closed", extra={"command": kind.value})
            return
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._mailbox.put(Envelope(Command(kind, done)))
        await done

    async def _post_timer(self, fired: TimerFired) -> None:
        await self._mailbox.put(Envelope(fired))

    def _make_sink(self, generation: int) -> EventSink:
        async def sink(event: TransportEvent) -> None:
            await self._mailbox.put(Envelope(event, generation))

        return sink

    async def _run(self) -> None:
        logger.debug("session_loop_started", extra={"session_id": self._session_id})
        while not self._stopping:
            envelope = await self._mailbox.get()
            try:
                await self._dispatch(envelope)
            except Exception as e:
                logger.exception(
                    "session_event_failed",
                    extra={"event": type(envelope.event).__name__, "error": type(e).__name__},
                )
                await self._fail(f"erro interno: {type(e).__name__}: {e}")
            finally:
                self._refresh_status()
                event = envelope.event
                if isinstance(event, Command) and event.done is not None and not event.done.done():
                    event.done.set_result(None)
                self._mailbox.task_done()
        self._drain_mailbox()
        logger.debug("session_loop_stopped", extra={"session_id": self._session_id})

    def _drain_mailbox(self) -> None:
        """Descarta o que ficou na fila após o shutdown, liberando quem espera."""
        dropped = 0
        while not self._mailbox.empty():
            envelope = self._mailbox.get_nowait()
            event = envelope.event
            if isinstance(event, Command) and event.done is not None and not event.done.done():
                event.done.set_result(None)
                dropped += 1
            self._mailbox.task_done()
        if dropped:
            logger.info("commands_dropped_on_shutdown", extra={"count": dropped})

    async def _dispatch(self, envelope: Envelope) -> None:
        event = envelope.event
        if envelope.generation is not None and envelope.generation != self._generation:
            logger.debug(
                "stale_event_dropped",
                extra={
                    "event": type(event).__name__,
                    "event_generation": envelope.generation,
                    "generation": self._generation,
                },
            )
            return

        if isinstance(event, Command):
            await self._handle_command(event.kind)
        elif isinstance(event, TimerFired):
            await self._handle_timer(event)
        elif isinstance(event, QrReceived):
            self._on_qr(event.data)
        elif isinstance(event, ConnectionOpened):
            self._on_opened()
        elif isinstance(event, ConnectionClosed):
            await self._on_closed(event)
        elif isinstance(event, CredentialsUpdated):
            await self._on_credentials_updated(event.credentials)
        elif isinstance(event, MessageReceived):
            self._on_message_received(event.envelope)
        else:
            logger.warning("unknown_event_ignored", extra={"event": type(event).__name__})

    async def _handle_command(self, kind: CommandKind) -> None:
        if kind == CommandKind.START:
            await self._cmd_start()
        elif kind == CommandKind.RESET:
            await self._cmd_reset()
        elif kind == CommandKind.REESTABLISH:
            await self._cmd_reestablish()
        elif kind == CommandKind.SHUTDOWN:
            await self._cmd_shutdown()

    async def _handle_timer(self, fired: TimerFired) -> None:
        if fired.generation != self._generation or not self._timers.is_current(fired):
            logger.debug("stale_timer_dropped", extra={"timer": fired.kind.value})
            return
        self._timers.consume(fired)

        if fired.kind == TimerKind.PAIRING:
            if self._state != ConnectionState.AWAITING_PAIRING:
                return
            logger.info(
                "pairing_timeout",
                extra={"timeout_s": self._settings.pairing_timeout_seconds},
            )
            await self._handle_disconnect(
                DisconnectReason.transient("pairing timeout"), Trigger.PAIRING_TIMEOUT
            )
        elif fired.kind == TimerKind.RECONNECT:
            if self._state != ConnectionState.RECONNECTING:
                return
            self._next_delay = None
            self._transition(Trigger.RECONNECT_DUE)
            await self._open_transport()

    # ------------------------------------------------------------------
    # Comandos
    # ------------------------------------------------------------------

    async def _cmd_start(self) -> None:
        if self._state in TERMINAL_STATES:
            logger.warning(
                "start_ignored_terminal",
                extra={"state": self._state.value, "hint": "reset_session required"},
            )
            return
        if self._state in IN_FLIGHT_STATES:
            logger.info("start_ignored_in_progress", extra={"state": self._state.value})
            return
        if self._state not in STARTABLE_STATES:
            logger.info("start_ignored", extra={"state": self._state.value})
            return

        self._transition(Trigger.START)
        try:
            self._credentials = self._store.load(self._session_id)
        except CredentialStoreError as e:
            await self._fail(f"falha ao carregar credenciais: {e}")
            return

        logger.info(
            "session_starting",
            extra={
                "has_credentials": self._credentials is not None,
                "location": self._store.location(self._session_id),
            },
        )
        await self._open_transport()

    async def _cmd_reset(self) -> None:
        self._timers.cancel_all()
        await self._close_transport()
        self._clear_readiness()
        self._attempts = 0
        self._next_delay = None
        self._last_reason = None
        self._last_error = None
        self._init_hint = None
        self._inbound_while_not_open = False

        try:
            self._wipe_credentials()
        except CredentialStoreError as e:
            await self._fail(f"falha ao apagar credenciais: {e}", wipe=False)
            return

        self._transition(Trigger.RESET)
        self._notifier.session_cleared("manual_reset")

    async def _cmd_reestablish(self) -> None:
        if self._state not in _REESTABLISH_STATES:
            logger.info("reestablish_skipped", extra={"state": self._state.value})
            return
        logger.info("transport_reestablishing", extra={"state": self._state.value})
        self._timers.cancel(TimerKind.PAIRING)
        self._clear_readiness()
        await self._close_transport()
        self._transition(Trigger.REESTABLISH)
        await self._open_transport()

    async def _cmd_shutdown(self) -> None:
        self._timers.cancel_all()
        self._stopping = True

        if self._state in TERMINAL_STATES or self._state == ConnectionState.IDLE:
            await self._close_transport()
            return

        self._transition(Trigger.SHUTDOWN)
        self._clear_readiness()
        self._next_delay = None
        await self._close_transport()
        self._transition(Trigger.CLOSED)

    # ------------------------------------------------------------------
    # Eventos do transporte
    # ------------------------------------------------------------------

    def _on_qr(self, data: str) -> None:
        if not data or not data.strip():
            logger.warning("empty_qr_ignored")
            return
        if self._state not in PAIRING_STATES:
            logger.debug("qr_ignored", extra={"state": self._state.value})
            return

        replaced = self._qr is not None
        self._transition(Trigger.QR)
        self._qr = data
        self._qr_since = time.monotonic()
        self._timers.schedule(
            TimerKind.PAIRING, self._settings.pairing_timeout_seconds, self._generation
        )
        logger.info("qr_available", extra={"replaced": replaced})
        self._notifier.qr_available(data)

    def _on_opened(self) -> None:
        if self._state == ConnectionState.OPEN:
            logger.debug("duplicate_open_ignored")
            return
        if self._state not in PAIRING_STATES:
            logger.debug("open_ignored", extra={"state": self._state.value})
            return

        self._transition(Trigger.OPENED)
        self._timers.cancel(TimerKind.PAIRING)
        self._qr = None
        self._qr_since = None
        self._attempts = 0
        self._next_delay = None
        self._last_reason = None
        self._init_hint = None
        self._inbound_while_not_open = False
        self._ready_since = _now()
        logger.info("session_ready", extra={"generation": self._generation})
        self._notifier.ready(self._ready_since)

    async def _on_closed(self, event: ConnectionClosed) -> None:
        if self._state not in _REESTABLISH_STATES:
            logger.debug("close_ignored", extra={"state": self._state.value})
            return
        reason = classify_disconnect(event.error_code, event.message)
        logger.info(
            "connection_closed",
            extra={"reason": reason.kind.value, "code": reason.code, "state": self._state.value},
        )
        await self._handle_disconnect(reason, Trigger.CONNECTION_LOST)

    async def _on_credentials_updated(self, update: dict[str, Any]) -> None:
        if self._state in TERMINAL_STATES or self._state == ConnectionState.IDLE:
            logger.debug("credentials_update_ignored", extra={"state": self._state.value})
            return

        base = self._credentials or SessionCredentials(session_id=self._session_id)
        merged = base.merged_with(update)
        try:
            self._store.save(merged)
        except CredentialStoreError as e:
            await self._fail(f"falha ao persistir credenciais: {e}")
            return
        self._credentials = merged
        logger.debug("credentials_persisted", extra={"key_categories": len(merged.keys)})

    def _on_message_received(self, envelope: dict[str, Any]) -> None:
        self._last_inbound_at = _now()
        if self._state != ConnectionState.OPEN:
            if not self._inbound_while_not_open:
                logger.info(
                    "inbound_while_not_open",
                    extra={"state": self._state.value, "hint": "probably_functional"},
                )
            self._inbound_while_not_open = True
        self._notifier.message_received(envelope)

    # ------------------------------------------------------------------
    # Política de desconexão
    # ------------------------------------------------------------------

    async def _handle_disconnect(self, reason: DisconnectReason, trigger: Trigger) -> None:
        self._last_reason = reason
        self._timers.cancel(TimerKind.PAIRING)
        self._clear_readiness()
        self._inbound_while_not_open = False

        if not reason.should_reconnect:
            await self._close_transport()
            self._transition(Trigger.LOGGED_OUT)
            if self._settings.logged_out_wipes_credentials:
                try:
                    self._wipe_credentials()
                except CredentialStoreError as e:
                    self._last_error = f"falha ao apagar credenciais: {e}"
                    logger.error("logged_out_wipe_failed", extra={"error": type(e).__name__})
            logger.warning("session_logged_out", extra={"code": reason.code})
            self._notifier.connection_lost(reason, False)
            self._notifier.logged_out()
            return

        if reason.wipes_credentials:
            try:
                self._wipe_credentials()
            except CredentialStoreError as e:
                await self._fail(f"falha ao apagar credenciais expiradas: {e}", wipe=False)
                return
            logger.warning("session_auth_expired", extra={"code": reason.code})
            self._notifier.session_cleared(reason.describe())

        delay = self._scheduler.next_delay(self._attempts, reason.kind)
        if delay is EXHAUSTED:
            self._notifier.connection_lost(reason, False)
            await self._fail(
                f"tentativas de reconexão esgotadas ({self._attempts}); "
                f"última causa: {reason.describe()}"
            )
            return

        await self._close_transport()
        self._transition(trigger)
        self._attempts += 1
        self._next_delay = delay
        self._timers.schedule(TimerKind.RECONNECT, delay, self._generation)
        logger.info(
            "reconnect_scheduled",
            extra={
                "attempt": self._attempts,
                "max_attempts": self._scheduler.max_attempts,
                "delay_s": delay,
                "reason": reason.kind.value,
            },
        )
        self._notifier.connection_lost(reason, True)

    async def _fail(self, reason: str, wipe: bool = True) -> None:
        self._timers.cancel_all()
        self._clear_readiness()
        self._next_delay = None
        await self._close_transport()
        if wipe:
            try:
                self._wipe_credentials()
            except CredentialStoreError as e:
                logger.error("failure_wipe_failed", extra={"error": type(e).__name__})

        self._last_error = reason
        if self._state not in TERMINAL_STATES:
            self._transition(Trigger.FAILURE)
        logger.error("session_failed", extra={"reason": reason})
        self._notifier.permanent_failure(reason)

    # ------------------------------------------------------------------
    # Transporte
    # ------------------------------------------------------------------

    async def _open_transport(self) -> None:
        self._generation += 1
        generation = self._generation
        payload = self._credentials.as_transport_payload() if self._credentials else None
        timeout = self._settings.transport_open_timeout_seconds
        try:
            with timed("transport_open"):
                await asyncio.wait_for(
                    self._transport.open(payload, self._make_sink(generation)), timeout
                )
        except TransportCredentialsError as e:
            await self._fail(f"transporte rejeitou as credenciais: {e}")
        except TimeoutError:
            self._init_hint = "timeout"
            self._last_error = f"transport open timed out after {timeout}s"
            logger.warning("transport_open_timeout", extra={"timeout_s": timeout})
            await self._handle_disconnect(
                DisconnectReason.transient(self._last_error), Trigger.CONNECTION_LOST
            )
        except Exception as e:
            self._init_hint = init_failure_hint(str(e))
            self._last_error = str(e)
            logger.warning(
                "transport_open_failed",
                extra={"error": type(e).__name__, "hint": self._init_hint},
            )
            await self._handle_disconnect(
                DisconnectReason.transient(f"open failed: {e}"), Trigger.CONNECTION_LOST
            )

    async def _close_transport(self) -> None:
        self._generation += 1
        timeout = self._settings.transport_close_timeout_seconds
        try:
            await asyncio.wait_for(self._transport.close(), timeout)
        except TimeoutError:
            logger.warning("transport_close_timeout", extra={"timeout_s": timeout})
        except Exception as e:
            logger.warning("transport_close_failed", extra={"error": type(e).__name__})

    # ------------------------------------------------------------------
    # Helpers de estado
    # ------------------------------------------------------------------

    def _transition(self, trigger: Trigger) -> bool:
        ok, next_state, error = validate_transition(self._state, trigger)
        if not ok or next_state is None:
            logger.warning(
                "invalid_transition",
                extra={"state": self._state.value, "trigger": trigger.value, "error": error},
            )
            return False
        previous = self._state
        self._state = next_state
        # Leitores veem a transição mesmo com o handler ainda em await
        self._refresh_status()
        logger.info(
            "connection_state_changed",
            extra={
                "from_state": previous.value,
                "to_state": next_state.value,
                "trigger": trigger.value,
                "generation": self._generation,
            },
        )
        return True

    def _wipe_credentials(self) -> None:
        self._credentials = None
        removed = self._store.clear(self._session_id)
        logger.info("credentials_wiped", extra={"removed": removed})

    def _clear_readiness(self) -> None:
        self._qr = None
        self._qr_since = None
        self._ready_since = None

    def _qr_age(self) -> float | None:
        if self._qr_since is None:
            return None
        return round(time.monotonic() - self._qr_since, 3)

    def _probably_functional(self) -> bool:
        if self._state == ConnectionState.OPEN or self._inbound_while_not_open:
            return True
        age = self._qr_age()
        return (
            age is not None
            and age > self._settings.functional_hint_after_seconds
            and self._transport.can_send
        )

    def _build_status(self) -> SessionStatus:
        return SessionStatus(
            state=self._state,
            has_qr=self._qr is not None,
            ready_since=self._ready_since,
            reconnect_attempts=self._attempts,
            status_message=status_message(
                self._state,
                reconnect_attempts=self._attempts,
                max_attempts=self._scheduler.max_attempts,
                last_error=self._last_error,
            ),
        )

    def _refresh_status(self) -> None:
        self._status = self._build_status()
        if self._state == ConnectionState.OPEN:
            self._ready_event.set()
        else:
            self._ready_event.clear()
        if self._qr is not None:
            self._qr_event.set()
        else:
            self._qr_event.clear()
