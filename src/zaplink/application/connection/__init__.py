"""Ciclo de vida da sessão: máquina de estados, snapshots e notificações."""

from zaplink.application.connection.machine import SessionStateMachine, init_failure_hint
from zaplink.application.connection.status import (
    PairingResult,
    SessionDiagnostics,
    SessionStatus,
)

__all__ = [
    "SessionStateMachine",
    "SessionStatus",
    "SessionDiagnostics",
    "PairingResult",
    "init_failure_hint",
]
