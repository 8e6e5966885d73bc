"""Ciclo de vida da conexão: estados, eventos, classificação e transições.

Exporta:
- ConnectionState: 8 estados canônicos
- Trigger / validate_transition: tabela pura de transições
- DisconnectReason / classify_disconnect: classificação de fechamentos
- Eventos do transporte (QrReceived, ConnectionOpened, ...)
"""

from zaplink.domain.connection.disconnect import (
    DisconnectKind,
    DisconnectReason,
    classify_disconnect,
)
from zaplink.domain.connection.events import (
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    MessageReceived,
    QrReceived,
    TransportEvent,
)
from zaplink.domain.connection.states import (
    IN_FLIGHT_STATES,
    PAIRING_STATES,
    TERMINAL_STATES,
    ConnectionState,
)
from zaplink.domain.connection.transitions import Trigger, validate_transition

__all__ = [
    "ConnectionState",
    "TERMINAL_STATES",
    "IN_FLIGHT_STATES",
    "PAIRING_STATES",
    "Trigger",
    "validate_transition",
    "DisconnectKind",
    "DisconnectReason",
    "classify_disconnect",
    "TransportEvent",
    "QrReceived",
    "ConnectionOpened",
    "ConnectionClosed",
    "CredentialsUpdated",
    "MessageReceived",
]
