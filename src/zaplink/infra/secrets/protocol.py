"""Porta de leitura da chave de credenciais (CREDENTIALS_ENCRYPTION_KEY)."""

from __future__ import annotations

from typing import Protocol


class SecretProvider(Protocol):
    """Fonte de segredos consultada por Settings fora de development.

    O valor lido é material de chave AES; implementações nunca o registram
    em log e levantam RuntimeError quando o nome não existe.
    """

    def get_secret(self, name: str, version: str = "latest") -> str: ...

    def secret_exists(self, name: str) -> bool: ...
