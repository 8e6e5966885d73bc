"""Factory de CredentialStore conforme settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.infra.credentials.file_store import FileCredentialStore
from zaplink.infra.credentials.memory_store import InMemoryCredentialStore
from zaplink.observability.logging import get_logger

if TYPE_CHECKING:
    from zaplink.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


def create_credential_store(settings: Settings) -> CredentialStoreProtocol:
    """Cria store de credenciais conforme CREDENTIAL_STORE_BACKEND.

    Raises:
        ValueError: backend desconhecido
        CredentialCryptoError: chave de criptografia inválida
    """
    backend = settings.credential_store_backend.lower()

    if backend == "memory":
        logger.info("Usando InMemoryCredentialStore")
        return InMemoryCredentialStore()

    if backend == "file":
        store = FileCredentialStore(
            settings.session_root_dir,
            encryption_key=settings.credentials_encryption_key,
        )
        logger.info(
            "Usando FileCredentialStore",
            extra={"root_dir": settings.session_root_dir, "encrypted": store.encrypted},
        )
        return store

    raise ValueError(f"Backend de credenciais não reconhecido: {backend}")
