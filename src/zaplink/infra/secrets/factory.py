from __future__ import annotations

import logging

from zaplink.observability.logging import get_logger

from .env_provider import EnvSecretProvider
from .file_provider import FileSecretProvider
from .protocol import SecretProvider

logger: logging.Logger = get_logger(__name__)

CREDENTIALS_KEY_SECRET = "CREDENTIALS_ENCRYPTION_KEY"


def create_secret_provider(backend: str = "env", secrets_dir: str | None = None) -> SecretProvider:
    """Factory para criar o provider de secrets apropriado."""
    if backend == "env":
        logger.info("Usando EnvSecretProvider para secrets")
        return EnvSecretProvider()

    if backend == "file":
        if not secrets_dir:
            raise ValueError("Backend de secrets 'file' requer secrets_dir")
        logger.info(
            "Usando FileSecretProvider para secrets",
            extra={"secrets_dir": secrets_dir},
        )
        return FileSecretProvider(secrets_dir)

    raise ValueError(f"Backend de secrets não reconhecido: {backend}")


def get_credentials_key(provider: SecretProvider | None = None) -> str | None:
    """Retorna a chave de criptografia de credenciais (None se ausente)."""
    provider = provider or EnvSecretProvider()
    if not provider.secret_exists(CREDENTIALS_KEY_SECRET):
        logger.warning(
            "Secret opcional não encontrado",
            extra={"secret_name": CREDENTIALS_KEY_SECRET},
        )
        return None
    return provider.get_secret(CREDENTIALS_KEY_SECRET)
