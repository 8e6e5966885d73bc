"""Provider de secrets montados como arquivos (ex.: Docker/K8s secrets)."""

from __future__ import annotations

import logging
from pathlib import Path

from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class FileSecretProvider:
    """Lê secrets de `<secrets_dir>/<NOME>`, um arquivo por secret."""

    def __init__(self, secrets_dir: str | Path) -> None:
        self._dir = Path(secrets_dir)

    def get_secret(self, name: str, version: str = "latest") -> str:
        path = self._dir / name
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning(
                "Secret não encontrado em arquivo",
                extra={"secret_name": name, "provider": "file"},
            )
            raise RuntimeError(f"Secret {name} não encontrado em {self._dir}") from exc

        if not value:
            raise RuntimeError(f"Secret {name} está vazio")
        return value

    def secret_exists(self, name: str) -> bool:
        return (self._dir / name).is_file()
