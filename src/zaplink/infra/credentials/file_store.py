"""Implementação de CredentialStore em disco (um diretório por sessão).

Layout:
    <root>/<session_id>/creds.json           identidade/registro
    <root>/<session_id>/keys-<categoria>.json material de chaves por categoria

Com chave configurada, cada arquivo é um envelope AES-256-GCM cujo AAD é
"<session_id>/<arquivo>" (um arquivo não pode ser trocado por outro).
Ausência do diretório não é erro: significa pareamento novo.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any

from zaplink.domain.credentials import SessionCredentials
from zaplink.domain.errors import CredentialCryptoError, CredentialStoreError
from zaplink.domain.protocols.credential_store import CredentialStoreProtocol
from zaplink.infra.credentials.crypto import (
    decode_key,
    decrypt_document,
    encrypt_document,
    is_encrypted_envelope,
)
from zaplink.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

CREDS_FILE = "creds.json"
KEYS_PREFIX = "keys-"
_CATEGORY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class FileCredentialStore(CredentialStoreProtocol):
    """Armazenamento em arquivos, opcionalmente cifrado."""

    def __init__(self, root_dir: str | Path, encryption_key: str | None = None) -> None:
        self._root = Path(root_dir)
        self._key = decode_key(encryption_key) if encryption_key else None

    @property
    def encrypted(self) -> bool:
        return self._key is not None

    def session_dir(self, session_id: str) -> Path:
        return self._root / session_id

    def location(self, session_id: str) -> str | None:
        return str(self.session_dir(session_id))

    def load(self, session_id: str) -> SessionCredentials | None:
        directory = self.session_dir(session_id)
        creds_path = directory / CREDS_FILE
        if not creds_path.is_file():
            logger.debug(
                "Credentials not found (file)",
                extra={"session_id": session_id, "dir_exists": directory.is_dir()},
            )
            return None

        creds = self._read_document(session_id, creds_path)
        keys: dict[str, dict[str, Any]] = {}
        for path in sorted(directory.glob(f"{KEYS_PREFIX}*.json")):
            category = path.stem[len(KEYS_PREFIX):]
            keys[category] = self._read_document(session_id, path)

        logger.debug(
            "Credentials loaded (file)",
            extra={"session_id": session_id, "key_categories": len(keys)},
        )
        return SessionCredentials(session_id=session_id, creds=creds, keys=keys)

    def save(self, credentials: SessionCredentials) -> None:
        session_id = credentials.session_id
        directory = self.session_dir(session_id)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            self._write_document(session_id, directory / CREDS_FILE, credentials.creds)

            written = set()
            for category, values in credentials.keys.items():
                if not _CATEGORY_PATTERN.match(category):
                    raise CredentialStoreError(f"Invalid key category name: {category!r}")
                name = f"{KEYS_PREFIX}{category}.json"
                self._write_document(session_id, directory / name, values)
                written.add(name)

            for stale in directory.glob(f"{KEYS_PREFIX}*.json"):
                if stale.name not in written:
                    stale.unlink()
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "Failed to save credentials to disk",
                extra={"session_id": session_id, "error": type(e).__name__},
            )
            raise CredentialStoreError(f"File save failed: {e}") from e

        logger.debug(
            "Credentials saved (file)",
            extra={
                "session_id": session_id,
                "key_categories": len(credentials.keys),
                "encrypted": self.encrypted,
            },
        )

    def clear(self, session_id: str) -> bool:
        directory = self.session_dir(session_id)
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.error(
                "Failed to clear credentials directory",
                extra={"session_id": session_id, "error": type(e).__name__},
            )
            raise CredentialStoreError(f"File clear failed: {e}") from e

        logger.info("Credentials directory cleared", extra={"session_id": session_id})
        return True

    def exists(self, session_id: str) -> bool:
        return (self.session_dir(session_id) / CREDS_FILE).is_file()

    def _read_document(self, session_id: str, path: Path) -> dict[str, Any]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CredentialStoreError(f"Unreadable credentials file {path.name}: {e}") from e

        if is_encrypted_envelope(raw):
            if self._key is None:
                raise CredentialStoreError(
                    f"{path.name} is encrypted but no credentials key is configured"
                )
            try:
                return decrypt_document(self._key, raw, f"{session_id}/{path.name}")
            except CredentialCryptoError:
                logger.error(
                    "Failed to decrypt credentials file",
                    extra={"session_id": session_id, "file": path.name},
                )
                raise

        if not isinstance(raw, dict):
            raise CredentialStoreError(f"Credentials file {path.name} is not a JSON object")
        if self._key is not None:
            logger.warning(
                "Plaintext credentials file found; it will be encrypted on next save",
                extra={"session_id": session_id, "file": path.name},
            )
        return raw

    def _write_document(self, session_id: str, path: Path, document: dict[str, Any]) -> None:
        if self._key is not None:
            document = encrypt_document(self._key, document, f"{session_id}/{path.name}")
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_text(json.dumps(document), encoding="utf-8")
        os.replace(tmp_path, path)
