"""Tabela de transições do ciclo de vida da conexão.

- TRANSITIONS[(current_state, trigger)] = next_state
- RESET leva qualquer estado a IDLE (fora da tabela)
- Estados terminais só saem via RESET
- Validação pura: sem side effects
"""

from __future__ import annotations

from enum import StrEnum

from zaplink.domain.connection.states import TERMINAL_STATES, ConnectionState


class Trigger(StrEnum):
    """Gatilhos de transição aplicados pelo SessionStateMachine."""

    START = "START"
    QR = "QR"
    OPENED = "OPENED"
    CONNECTION_LOST = "CONNECTION_LOST"
    PAIRING_TIMEOUT = "PAIRING_TIMEOUT"
    RECONNECT_DUE = "RECONNECT_DUE"
    REESTABLISH = "REESTABLISH"
    LOGGED_OUT = "LOGGED_OUT"
    FAILURE = "FAILURE"
    SHUTDOWN = "SHUTDOWN"
    CLOSED = "CLOSED"
    RESET = "RESET"


_S = ConnectionState
_T = Trigger

TRANSITIONS: dict[tuple[ConnectionState, Trigger], ConnectionState] = {
    # === IDLE → ... ===
    (_S.IDLE, _T.START): _S.INITIALIZING,
    (_S.IDLE, _T.FAILURE): _S.FAILED,
    # === INITIALIZING → ... ===
    (_S.INITIALIZING, _T.QR): _S.AWAITING_PAIRING,
    (_S.INITIALIZING, _T.OPENED): _S.OPEN,
    (_S.INITIALIZING, _T.CONNECTION_LOST): _S.RECONNECTING,
    (_S.INITIALIZING, _T.REESTABLISH): _S.INITIALIZING,
    (_S.INITIALIZING, _T.LOGGED_OUT): _S.LOGGED_OUT,
    (_S.INITIALIZING, _T.FAILURE): _S.FAILED,
    (_S.INITIALIZING, _T.SHUTDOWN): _S.CLOSING,
    # === AWAITING_PAIRING → ... ===
    (_S.AWAITING_PAIRING, _T.QR): _S.AWAITING_PAIRING,
    (_S.AWAITING_PAIRING, _T.OPENED): _S.OPEN,
    (_S.AWAITING_PAIRING, _T.PAIRING_TIMEOUT): _S.RECONNECTING,
    (_S.AWAITING_PAIRING, _T.CONNECTION_LOST): _S.RECONNECTING,
    (_S.AWAITING_PAIRING, _T.REESTABLISH): _S.INITIALIZING,
    (_S.AWAITING_PAIRING, _T.LOGGED_OUT): _S.LOGGED_OUT,
    (_S.AWAITING_PAIRING, _T.FAILURE): _S.FAILED,
    (_S.AWAITING_PAIRING, _T.SHUTDOWN): _S.CLOSING,
    # === OPEN → ... ===
    (_S.OPEN, _T.CONNECTION_LOST): _S.RECONNECTING,
    (_S.OPEN, _T.REESTABLISH): _S.INITIALIZING,
    (_S.OPEN, _T.LOGGED_OUT): _S.LOGGED_OUT,
    (_S.OPEN, _T.FAILURE): _S.FAILED,
    (_S.OPEN, _T.SHUTDOWN): _S.CLOSING,
    # === RECONNECTING → ... ===
    (_S.RECONNECTING, _T.RECONNECT_DUE): _S.INITIALIZING,
    (_S.RECONNECTING, _T.FAILURE): _S.FAILED,
    (_S.RECONNECTING, _T.SHUTDOWN): _S.CLOSING,
    # === CLOSING → ... ===
    (_S.CLOSING, _T.CLOSED): _S.IDLE,
    (_S.CLOSING, _T.FAILURE): _S.FAILED,
    # === Estados terminais: LOGGED_OUT, FAILED ===
    # Nenhuma transição de saída além de RESET
}


def validate_transition(
    current_state: ConnectionState, trigger: Trigger
) -> tuple[bool, ConnectionState | None, str]:
    """Valida se uma transição é permitida.

    Retorna:
    - (True, next_state, ""): transição válida
    - (False, None, motivo): transição inválida

    Nunca lança exceção; apenas valida.
    """
    if trigger == Trigger.RESET:
        return True, ConnectionState.IDLE, ""

    if current_state in TERMINAL_STATES:
        return (
            False,
            None,
            f"Terminal state {current_state} has no transitions",
        )

    key = (current_state, trigger)
    if key not in TRANSITIONS:
        return (
            False,
            None,
            f"No transition from {current_state} on trigger {trigger}",
        )

    return True, TRANSITIONS[key], ""
