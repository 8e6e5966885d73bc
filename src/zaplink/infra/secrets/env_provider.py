"""Segredos lidos do ambiente do processo (padrão em dev e em containers)."""

from __future__ import annotations

import logging
import os

from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class EnvSecretProvider:
    """Lê `CREDENTIALS_ENCRYPTION_KEY` (ou outro nome) de os.environ.

    `version` existe só para compatibilidade com SecretProvider.
    """

    def get_secret(self, name: str, version: str = "latest") -> str:
        value = os.environ.get(name, "").strip()
        if not value:
            logger.warning("secret_missing", extra={"secret_name": name, "provider": "env"})
            raise RuntimeError(f"Secret {name} não encontrado no ambiente")
        logger.debug("secret_loaded", extra={"secret_name": name, "provider": "env"})
        return value

    def secret_exists(self, name: str) -> bool:
        return bool(os.environ.get(name, "").strip())
