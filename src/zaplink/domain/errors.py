"""Taxonomia de erros do zaplink.

Cada falha termina em um resultado classificado ou em uma transição de estado
com notificação. Exceções abaixo são as fronteiras entre camadas; a camada de
aplicação nunca deixa que escapem como falha não tratada.
"""

from __future__ import annotations

from enum import StrEnum


class ZaplinkError(Exception):
    """Erro base do projeto."""

    pass


class CredentialStoreError(ZaplinkError):
    """Estado local de credenciais corrompido ou inacessível (CredentialFailure)."""

    pass


class CredentialCryptoError(CredentialStoreError):
    """Falha ao cifrar/decifrar material de credenciais."""

    pass


class TransportError(ZaplinkError):
    """Erro reportado pelo transporte (open/send)."""

    def __init__(self, message: str, *, is_retryable: bool | None = None) -> None:
        super().__init__(message)
        # None = classificar pelo texto da mensagem
        self.is_retryable = is_retryable


class TransportCredentialsError(TransportError):
    """Transporte rejeitou credenciais malformadas/ausentes em open()."""

    def __init__(self, message: str) -> None:
        super().__init__(message, is_retryable=False)


class InvalidInputError(ZaplinkError):
    """Erro do chamador (nunca retentado)."""

    pass


class InvalidTargetError(InvalidInputError):
    """Destino vazio ou não endereçável."""

    pass


class InvalidMessageError(InvalidInputError):
    """Texto vazio ou acima do limite."""

    pass


class DeliveryErrorCode(StrEnum):
    """Códigos de erro expostos pelo DeliveryManager."""

    INVALID_INPUT = "INVALID_INPUT"
    """Erro do chamador; nenhuma chamada ao transporte."""

    NOT_READY = "NOT_READY"
    """Sessão não pronta; chamador pode tentar mais tarde."""

    RECOVERABLE = "RECOVERABLE"
    """Falha de transporte retentável (uso interno, nunca retornado)."""

    TERMINAL = "TERMINAL"
    """Retries esgotados ou falha não recuperável."""
