"""Re-exports dos Protocolos de domínio para uso por Application."""

from __future__ import annotations

from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.domain.protocols.listener import SessionListener
from zaplink.domain.protocols.transport import EventSink, TransportAdapter

__all__ = [
    "CredentialStoreProtocol",
    "EventSink",
    "SessionListener",
    "TransportAdapter",
]
