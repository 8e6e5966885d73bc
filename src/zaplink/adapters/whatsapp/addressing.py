"""Normalização de destinos e validação de texto para envio.

Destino aceito:
- telefone com separadores comuns ("+55 (11) 99999-0000", "555-1234")
- JID já qualificado ("5511999990000@s.whatsapp.net")

Resultado sempre no formato "<dígitos>@s.whatsapp.net".
"""

from __future__ import annotations

import re

from zaplink.config.settings import WHATSAPP_USER_SERVER
from zaplink.domain.errors import InvalidMessageError, InvalidTargetError

MAX_TEXT_LENGTH = 4096
MIN_TARGET_DIGITS = 7
MAX_TARGET_DIGITS = 15  # E.164

_SEPARATORS = re.compile(r"[\s\-().]")
_DIGITS = re.compile(r"^\d+$")
# Sufixo de dispositivo (":<n>") presente em JIDs de sessão multi-device
_DEVICE_SUFFIX = re.compile(r":\d+$")


def normalize_target(
    target: str | None,
    min_digits: int = MIN_TARGET_DIGITS,
    max_digits: int = MAX_TARGET_DIGITS,
) -> str:
    """Normaliza destino para JID de usuário.

    Raises:
        InvalidTargetError: destino vazio, com caracteres inválidos ou fora
            do intervalo de dígitos
    """
    if target is None or not target.strip():
        raise InvalidTargetError("target is required")

    value = target.strip()
    if "@" in value:
        local, _, server = value.partition("@")
        if server != WHATSAPP_USER_SERVER:
            raise InvalidTargetError(f"unsupported target server: {server or '<empty>'}")
        value = _DEVICE_SUFFIX.sub("", local)

    digits = _SEPARATORS.sub("", value)
    if digits.startswith("+"):
        digits = digits[1:]

    if not _DIGITS.match(digits):
        raise InvalidTargetError("target must contain only digits and separators")
    if not min_digits <= len(digits) <= max_digits:
        raise InvalidTargetError(
            f"target must have between {min_digits} and {max_digits} digits"
        )
    return f"{digits}@{WHATSAPP_USER_SERVER}"


def validate_text(text: str | None, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Valida texto e retorna versão sem espaços nas bordas.

    Raises:
        InvalidMessageError: texto vazio ou acima do limite
    """
    if text is None or not text.strip():
        raise InvalidMessageError("text is required")

    value = text.strip()
    if len(value) > max_length:
        raise InvalidMessageError(f"text exceeds maximum length of {max_length} characters")
    return value
