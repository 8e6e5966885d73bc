"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou provider de secrets).
Nunca hardcode chaves de criptografia ou valores sensíveis.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from zaplink.infra.secrets import create_secret_provider, get_credentials_key
from zaplink.observability.logging import get_logger

# -----------------------------------------------------------------------------
# Constantes do serviço de mensagens
# -----------------------------------------------------------------------------
WHATSAPP_USER_SERVER: str = "s.whatsapp.net"
DEFAULT_SESSION_ID: str = "default"


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "zaplink"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    http_host: str = "0.0.0.0"
    http_port: int = 8080

    # Sessão / credenciais
    session_id: str = DEFAULT_SESSION_ID
    session_autostart: bool = True  # Inicia a sessão no startup da API
    session_root_dir: str = ".zaplink/sessions"  # Um diretório por session_id
    credential_store_backend: str = "file"  # file | memory
    credentials_encryption_key: str | None = None  # base64url, 32 bytes (AES-256-GCM)
    secrets_backend: str = "env"  # env | file
    secrets_dir: str | None = None  # Para secrets_backend=file

    # Pareamento (QR)
    pairing_timeout_seconds: float = 60.0  # Inatividade desde o último QR
    pairing_wait_timeout_seconds: float = 30.0  # Espera por QR em request_new_pairing
    functional_hint_after_seconds: float = 30.0  # Apenas observabilidade

    # Reconexão
    reconnect_max_attempts: int = 5
    reconnect_fast_tier_attempts: int = 2  # Tentativas 0..1 usam o tier rápido
    reconnect_fast_tier_seconds: float = 3.0
    reconnect_slow_tier_seconds: float = 5.0
    protocol_rejected_backoff_multiplier: float = 2.0
    logged_out_wipes_credentials: bool = True

    # Envio (delivery)
    delivery_readiness_grace_seconds: float = 5.0
    delivery_send_timeout_seconds: float = 30.0
    delivery_max_retries: int = 3
    delivery_retry_delay_seconds: float = 1.0
    delivery_min_target_digits: int = 7
    delivery_max_target_digits: int = 15  # Limite E.164
    max_message_length_chars: int = 4096

    # Loop de eventos
    mailbox_max_size: int = 1000

    # Transporte
    transport_backend: str = "loopback"  # loopback (dev/testes)
    transport_open_timeout_seconds: float = 30.0  # open() travado conta como falha transitória
    transport_close_timeout_seconds: float = 10.0

    @property
    def session_dir(self) -> str:
        """Diretório de credenciais da sessão ativa."""
        return os.path.join(self.session_root_dir, self.session_id)

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    def validate_credential_store_config(self) -> list[str]:
        """Valida backend de credenciais por ambiente.

        Em staging/prod, memory é proibido (pareamento se perderia a cada restart)
        e a chave de criptografia é obrigatória.
        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        backend = self.credential_store_backend.lower()

        valid_backends = {"memory", "file"}
        if backend not in valid_backends:
            errors.append(
                f"CREDENTIAL_STORE_BACKEND '{backend}' inválido. Valores válidos: {valid_backends}"
            )

        if (self.is_staging or self.is_production) and backend == "memory":
            errors.append(
                "CREDENTIAL_STORE_BACKEND=memory é proibido em staging/production. "
                "Use 'file' para persistir o pareamento."
            )

        if (self.is_staging or self.is_production) and not self.credentials_encryption_key:
            errors.append(
                "CREDENTIALS_ENCRYPTION_KEY obrigatório em staging/production "
                "(credenciais não podem ser gravadas em texto puro)"
            )

        if not self.session_id or any(sep in self.session_id for sep in ("/", "\\", "..")):
            errors.append("SESSION_ID inválido: não pode ser vazio nem conter separadores")

        return errors

    def validate_reconnect_config(self) -> list[str]:
        """Valida política de reconexão."""
        errors: list[str] = []
        if self.reconnect_max_attempts < 1:
            errors.append("RECONNECT_MAX_ATTEMPTS deve ser >= 1")
        if self.reconnect_fast_tier_seconds <= 0 or self.reconnect_slow_tier_seconds <= 0:
            errors.append("Tiers de backoff devem ser > 0")
        if self.protocol_rejected_backoff_multiplier < 1:
            errors.append("PROTOCOL_REJECTED_BACKOFF_MULTIPLIER deve ser >= 1")
        if self.pairing_timeout_seconds <= 0:
            errors.append("PAIRING_TIMEOUT_SECONDS deve ser > 0")
        return errors

    def validate_delivery_config(self) -> list[str]:
        """Valida parâmetros de envio."""
        errors: list[str] = []
        if self.delivery_max_retries < 0:
            errors.append("DELIVERY_MAX_RETRIES deve ser >= 0")
        if self.delivery_send_timeout_seconds <= 0:
            errors.append("DELIVERY_SEND_TIMEOUT_SECONDS deve ser > 0")
        if self.delivery_readiness_grace_seconds < 0:
            errors.append("DELIVERY_READINESS_GRACE_SECONDS deve ser >= 0")
        if not 0 < self.delivery_min_target_digits <= self.delivery_max_target_digits:
            errors.append("DELIVERY_MIN_TARGET_DIGITS deve estar entre 1 e MAX_TARGET_DIGITS")
        return errors

    def validate_transport_config(self) -> list[str]:
        """Valida backend de transporte."""
        errors: list[str] = []
        backend = self.transport_backend.lower()
        if backend not in {"loopback"}:
            errors.append(f"TRANSPORT_BACKEND '{backend}' inválido. Valores válidos: loopback")
        if self.transport_open_timeout_seconds <= 0 or self.transport_close_timeout_seconds <= 0:
            errors.append("TRANSPORT_OPEN/CLOSE_TIMEOUT_SECONDS devem ser > 0")
        if self.mailbox_max_size < 1:
            errors.append("MAILBOX_MAX_SIZE deve ser >= 1")
        return errors

    def validate_all(self) -> list[str]:
        """Agrega todas as validações (usado no bootstrap)."""
        errors: list[str] = []
        errors.extend(self.validate_credential_store_config())
        errors.extend(self.validate_reconnect_config())
        errors.extend(self.validate_delivery_config())
        errors.extend(self.validate_transport_config())
        return errors

    def model_post_init(self, __context: Any) -> None:
        """Carrega a chave de criptografia via provider de secrets fora de dev.

        Conforme regras do projeto:
        - Nunca logar valores de secrets
        - Fail-closed em produção se o provider não puder ser criado
        """
        logger: logging.Logger = get_logger(__name__)

        if self.is_development:
            logger.info(
                "Usando configuração de development (secrets via env vars)",
                extra={"environment": self.environment},
            )
            return

        if self.credentials_encryption_key:
            logger.info(
                "Chave de credenciais fornecida diretamente pelo ambiente",
                extra={"environment": self.environment},
            )
            return

        try:
            provider = create_secret_provider(
                backend=self.secrets_backend, secrets_dir=self.secrets_dir
            )
        except ValueError as e:
            logger.error(
                "Falha ao criar provider de secrets",
                extra={"error": type(e).__name__, "environment": self.environment},
            )
            raise RuntimeError(
                f"Não foi possível inicializar provider de secrets: {type(e).__name__}"
            ) from e

        key = get_credentials_key(provider)
        if key:
            self.credentials_encryption_key = key
            logger.info(
                "Secret carregado do provider",
                extra={"secret_name": "CREDENTIALS_ENCRYPTION_KEY", "environment": self.environment},
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
