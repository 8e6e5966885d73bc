"""Credenciais de pareamento de uma sessão.

Material opaco produzido pelo transporte (identidade + chaves). O núcleo
nunca interpreta o conteúdo: apenas persiste a cada credentialsUpdated e
entrega de volta ao transporte no próximo open().
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionCredentials(BaseModel):
    """Credenciais persistidas por sessão.

    - creds: identidade/registro do dispositivo (arquivo `creds`)
    - keys: material criptográfico agrupado por categoria (um arquivo por categoria)
    """

    session_id: str
    creds: dict[str, Any] = Field(default_factory=dict)
    keys: dict[str, dict[str, Any]] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def identity(self) -> str | None:
        """Identificador do dispositivo pareado (se o transporte informou)."""
        me = self.creds.get("me")
        if isinstance(me, dict):
            return me.get("id")
        return None

    def merged_with(self, update: dict[str, Any]) -> SessionCredentials:
        """Aplica um credentialsUpdated parcial e retorna nova instância.

        O transporte pode emitir apenas as chaves alteradas; `keys` é
        mesclado por categoria, o restante substitui `creds`.
        """
        update = dict(update)
        keys_update = update.pop("keys", None) or {}
        creds = {**self.creds, **update}
        keys = {category: dict(values) for category, values in self.keys.items()}
        for category, values in keys_update.items():
            keys.setdefault(category, {}).update(values or {})
        return SessionCredentials(session_id=self.session_id, creds=creds, keys=keys)

    def as_transport_payload(self) -> dict[str, Any]:
        """Formato entregue ao transporte em open()."""
        return {"creds": dict(self.creds), "keys": {k: dict(v) for k, v in self.keys.items()}}
