"""Implementação de CredentialStore em memória (apenas dev/testes)."""

from __future__ import annotations

import logging

from zaplink.domain.credentials import SessionCredentials
from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class InMemoryCredentialStore(CredentialStoreProtocol):
    """Armazenamento em memória (não usar em produção: perde pareamento no restart)."""

    def __init__(self) -> None:
        self._items: dict[str, SessionCredentials] = {}

    def load(self, session_id: str) -> SessionCredentials | None:
        credentials = self._items.get(session_id)
        if credentials is None:
            logger.debug("Credentials not found (in-memory)", extra={"session_id": session_id})
            return None
        return credentials.model_copy(deep=True)

    def save(self, credentials: SessionCredentials) -> None:
        self._items[credentials.session_id] = credentials.model_copy(deep=True)
        logger.debug(
            "Credentials saved (in-memory)",
            extra={"session_id": credentials.session_id, "key_categories": len(credentials.keys)},
        )

    def clear(self, session_id: str) -> bool:
        removed = self._items.pop(session_id, None) is not None
        if removed:
            logger.debug("Credentials cleared (in-memory)", extra={"session_id": session_id})
        return removed

    def exists(self, session_id: str) -> bool:
        return session_id in self._items
