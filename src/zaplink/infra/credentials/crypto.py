"""Primitivas criptográficas para credenciais em repouso (AES-256-GCM).

Responsabilidades:
- Cifrar/decifrar documentos JSON de credenciais
- Isolamento de cryptography.hazmat
- Vincular o ciphertext ao seu local (session_id + arquivo) via AAD
"""

from __future__ import annotations

import base64
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from zaplink.domain.errors import CredentialCryptoError

AES_KEY_SIZE = 32  # 256 bits
IV_SIZE = 12  # 96 bits (recomendado para GCM)
ENVELOPE_VERSION = 1


def generate_key() -> str:
    """Gera chave nova em base64url (para CREDENTIALS_ENCRYPTION_KEY)."""
    return base64.urlsafe_b64encode(os.urandom(AES_KEY_SIZE)).decode("ascii")


def decode_key(encoded_key: str) -> bytes:
    """Decodifica chave base64url/base64 e valida o tamanho.

    Raises:
        CredentialCryptoError: Se chave inválida
    """
    try:
        padded = encoded_key + "=" * (-len(encoded_key) % 4)
        key = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        raise CredentialCryptoError(f"Invalid credentials key: {e}") from e

    if len(key) != AES_KEY_SIZE:
        raise CredentialCryptoError(f"Invalid credentials key size: {len(key)}")
    return key


def encrypt_document(key: bytes, document: dict[str, Any], aad: str) -> dict[str, Any]:
    """Cifra documento JSON com AES-256-GCM.

    Returns:
        Envelope {"v", "iv", "data"} (campos binários em base64)

    Raises:
        CredentialCryptoError: Se criptografia falhar
    """
    try:
        iv = os.urandom(IV_SIZE)
        plaintext = json.dumps(document, separators=(",", ":")).encode("utf-8")
        ciphertext = AESGCM(key).encrypt(iv, plaintext, aad.encode("utf-8"))
    except (TypeError, ValueError) as e:
        raise CredentialCryptoError(f"Credentials encryption failed: {e}") from e

    return {
        "v": ENVELOPE_VERSION,
        "iv": base64.b64encode(iv).decode("ascii"),
        "data": base64.b64encode(ciphertext).decode("ascii"),
    }


def decrypt_document(key: bytes, envelope: dict[str, Any], aad: str) -> dict[str, Any]:
    """Decifra envelope produzido por encrypt_document.

    Raises:
        CredentialCryptoError: Se envelope inválido, chave errada ou dado adulterado
    """
    if not isinstance(envelope, dict) or envelope.get("v") != ENVELOPE_VERSION:
        raise CredentialCryptoError("Unsupported credentials envelope")

    try:
        iv = base64.b64decode(envelope["iv"])
        ciphertext = base64.b64decode(envelope["data"])
        plaintext = AESGCM(key).decrypt(iv, ciphertext, aad.encode("utf-8"))
        document = json.loads(plaintext.decode("utf-8"))
    except InvalidTag as e:
        raise CredentialCryptoError("Credentials authentication failed (wrong key?)") from e
    except (KeyError, ValueError, TypeError) as e:
        raise CredentialCryptoError(f"Credentials decryption failed: {e}") from e

    if not isinstance(document, dict):
        raise CredentialCryptoError("Decrypted credentials are not a JSON object")
    return document


def is_encrypted_envelope(document: Any) -> bool:
    """True se o documento lido do disco é um envelope cifrado."""
    return isinstance(document, dict) and {"v", "iv", "data"} <= document.keys()
