from __future__ import annotations

from .env_provider import EnvSecretProvider
from .factory import CREDENTIALS_KEY_SECRET, create_secret_provider, get_credentials_key
from .file_provider import FileSecretProvider
from .protocol import SecretProvider

__all__ = [
    "SecretProvider",
    "EnvSecretProvider",
    "FileSecretProvider",
    "CREDENTIALS_KEY_SECRET",
    "create_secret_provider",
    "get_credentials_key",
]
