"""Classificação de desconexões.

Entrada: código/mensagem do evento connectionClosed do transporte.
Saída: DisconnectReason (variante etiquetada) que decide se há reconexão,
se as credenciais são apagadas e qual backoff aplicar.

Classificação pura: sem side effects, nunca lança exceção.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

# Códigos de fechamento do serviço (status HTTP-like enviados no close)
AUTH_EXPIRED_CODES = frozenset({401, 403, 419})
PROTOCOL_REJECTED_CODES = frozenset({405, 426})

_LOGGED_OUT_PATTERN = re.compile(r"logged[\s_-]?out|log[\s_-]?out", re.IGNORECASE)


class DisconnectKind(StrEnum):
    """Variantes de DisconnectReason."""

    LOGGED_OUT = "LOGGED_OUT"
    """Ação remota explícita; exige novo pareamento iniciado pelo usuário."""

    AUTH_EXPIRED = "AUTH_EXPIRED"
    """Sessão inválida/expirada; apaga credenciais e reconecta do zero."""

    PROTOCOL_REJECTED = "PROTOCOL_REJECTED"
    """Método/versão rejeitado pelo servidor; backoff estendido."""

    TRANSIENT = "TRANSIENT"
    """Rede, timeout e demais falhas; backoff padrão."""


@dataclass(frozen=True, slots=True)
class DisconnectReason:
    """Motivo classificado de uma desconexão."""

    kind: DisconnectKind
    code: int | None = None
    cause: str = ""

    @classmethod
    def logged_out(cls, code: int | None = None, cause: str = "") -> DisconnectReason:
        return cls(DisconnectKind.LOGGED_OUT, code, cause)

    @classmethod
    def auth_expired(cls, code: int, cause: str = "") -> DisconnectReason:
        return cls(DisconnectKind.AUTH_EXPIRED, code, cause)

    @classmethod
    def protocol_rejected(cls, code: int, cause: str = "") -> DisconnectReason:
        return cls(DisconnectKind.PROTOCOL_REJECTED, code, cause)

    @classmethod
    def transient(cls, cause: str, code: int | None = None) -> DisconnectReason:
        return cls(DisconnectKind.TRANSIENT, code, cause)

    @property
    def should_reconnect(self) -> bool:
        """LoggedOut é o único motivo que não reconecta."""
        return self.kind != DisconnectKind.LOGGED_OUT

    @property
    def wipes_credentials(self) -> bool:
        """AuthExpired força pareamento novo."""
        return self.kind == DisconnectKind.AUTH_EXPIRED

    def describe(self) -> str:
        """Texto curto para logs/diagnóstico (sem PII)."""
        parts = [self.kind.value]
        if self.code is not None:
            parts.append(str(self.code))
        if self.cause:
            parts.append(self.cause)
        return ":".join(parts)


def classify_disconnect(error_code: int | None, message: str | None = None) -> DisconnectReason:
    """Classifica o fechamento reportado pelo transporte.

    - 401/None com mensagem de logout ⇒ LoggedOut
    - 401/403/419 ⇒ AuthExpired
    - 405/426 ⇒ ProtocolRejected
    - qualquer outro ⇒ Transient
    """
    text = (message or "").strip()

    if error_code in AUTH_EXPIRED_CODES | {None} and _LOGGED_OUT_PATTERN.search(text):
        return DisconnectReason.logged_out(error_code, text)

    if error_code in AUTH_EXPIRED_CODES:
        return DisconnectReason.auth_expired(error_code, text)

    if error_code in PROTOCOL_REJECTED_CODES:
        return DisconnectReason.protocol_rejected(error_code, text)

    cause = text or (f"connection closed ({error_code})" if error_code else "connection closed")
    return DisconnectReason.transient(cause, error_code)
