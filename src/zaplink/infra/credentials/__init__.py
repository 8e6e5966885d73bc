"""Persistência de credenciais de pareamento (memória ou disco cifrado)."""

from zaplink.infra.credentials.crypto import generate_key
from zaplink.infra.credentials.factory import create_credential_store
from zaplink.infra.credentials.file_store import FileCredentialStore
from zaplink.infra.credentials.memory_store import InMemoryCredentialStore

__all__ = [
    "FileCredentialStore",
    "InMemoryCredentialStore",
    "create_credential_store",
    "generate_key",
]
