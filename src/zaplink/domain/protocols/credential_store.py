"""Protocolo de domínio para persistência de credenciais de sessão."""

from __future__ import annotations

from abc import ABC, abstractmethod

from zaplink.domain.credentials import SessionCredentials


class CredentialStoreProtocol(ABC):
    """Contrato mínimo para armazenamento de SessionCredentials.

    Implementações devem:
    - Retornar None em load() quando não há pareamento (não é erro)
    - Levantar CredentialStoreError para estado corrompido/ilegível
    - Tornar clear() idempotente
    """

    @abstractmethod
    def load(self, session_id: str) -> SessionCredentials | None: ...

    @abstractmethod
    def save(self, credentials: SessionCredentials) -> None: ...

    @abstractmethod
    def clear(self, session_id: str) -> bool: ...

    @abstractmethod
    def exists(self, session_id: str) -> bool: ...

    def location(self, session_id: str) -> str | None:
        """Onde as credenciais vivem (diagnóstico); None se não aplicável."""
        return None
