"""DeliveryManager: envio validado, com timeout e retries limitados.

Fluxo de send(target, text):
1. Validar destino/texto (erro ⇒ INVALID_INPUT, nenhuma chamada ao transporte)
2. Garantir prontidão (espera event-driven; modo degradado se o transporte
   reporta envio funcional; senão NOT_READY)
3. Enviar com timeout rígido
4. Falhas recuperáveis ⇒ retry com delay fixo; o primeiro retry também
   reestabelece o transporte
5. Esgotado ⇒ TERMINAL com número de tentativas e última causa

Não há fila: durabilidade é responsabilidade do chamador.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from zaplink.adapters.whatsapp.addressing import normalize_target, validate_text
from zaplink.application.connection.machine import SessionStateMachine
from zaplink.config.settings import Settings, get_settings
from zaplink.domain.errors import DeliveryErrorCode, InvalidInputError, TransportError
from zaplink.domain.protocols.transport import TransportAdapter
from zaplink.observability.context import correlation_scope
from zaplink.observability.logging import get_logger, log_fallback, mask_target

logger: logging.Logger = get_logger(__name__)

# Mensagens de erro que indicam conexão perdida/estado interno transitório
RECOVERABLE_ERROR_PATTERNS: tuple[str, ...] = (
    "attrs",
    "undefined",
    "cannot read properties",
    "connection lost",
    "connection closed",
    "timed out",
    "timeout",
    "network",
    "econnreset",
    "enotfound",
)


def is_recoverable_error(error: BaseException) -> bool:
    """Classifica erro de envio como recuperável (retry) ou terminal."""
    if isinstance(error, TimeoutError):
        return True
    if isinstance(error, InvalidInputError):
        return False
    if isinstance(error, TransportError) and error.is_retryable is not None:
        return error.is_retryable
    text = str(error).lower()
    return any(pattern in text for pattern in RECOVERABLE_ERROR_PATTERNS)


@dataclass(slots=True)
class OutboundMessage:
    """Uma mensagem por chamada de send(); nunca compartilhada."""

    target: str
    payload: dict[str, Any]
    max_attempts: int
    attempt: int = 0
    causes: list[str] = field(default_factory=list)


class DeliveryResult(BaseModel):
    """Resultado classificado de um envio."""

    success: bool
    message_id: str | None = None
    attempts: int = 0
    degraded: bool = False
    error_code: DeliveryErrorCode | None = None
    error_message: str | None = None
    correlation_id: str | None = None


class DeliveryManager:
    """Envia mensagens de texto coordenando com o SessionStateMachine."""

    def __init__(
        self,
        machine: SessionStateMachine,
        transport: TransportAdapter,
        settings: Settings | None = None,
    ) -> None:
        self._machine = machine
        self._transport = transport
        self._settings = settings or get_settings()

    async def send(self, target: str | None, text: str | None) -> DeliveryResult:
        with correlation_scope() as correlation_id:
            try:
                message = self._build_message(target, text)
            except InvalidInputError as e:
                logger.info("delivery_invalid_input", extra={"error": str(e)})
                return DeliveryResult(
                    success=False,
                    error_code=DeliveryErrorCode.INVALID_INPUT,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return await self._deliver(message, correlation_id)

    def _build_message(self, target: str | None, text: str | None) -> OutboundMessage:
        settings = self._settings
        jid = normalize_target(
            target,
            settings.delivery_min_target_digits,
            settings.delivery_max_target_digits,
        )
        body = validate_text(text, settings.max_message_length_chars)
        return OutboundMessage(
            target=jid,
            payload={"text": body},
            max_attempts=settings.delivery_max_retries + 1,
        )

    async def _deliver(self, message: OutboundMessage, correlation_id: str) -> DeliveryResult:
        settings = self._settings
        degraded = False

        while message.attempt < message.max_attempts:
            message.attempt += 1
            readiness = await self._ensure_ready()

            if readiness is None:
                if message.attempt == 1:
                    logger.info(
                        "delivery_not_ready",
                        extra={"state": self._machine.get_status().state.value},
                    )
                    return DeliveryResult(
                        success=False,
                        attempts=message.attempt,
                        error_code=DeliveryErrorCode.NOT_READY,
                        error_message="sessão não está pronta para envio",
                        correlation_id=correlation_id,
                    )
                message.causes.append("session not ready")
            else:
                degraded = readiness == "degraded"
                try:
                    response = await asyncio.wait_for(
                        self._transport.send(message.target, message.payload),
                        timeout=settings.delivery_send_timeout_seconds,
                    )
                except TimeoutError:
                    message.causes.append(
                        f"send timed out after {settings.delivery_send_timeout_seconds}s"
                    )
                except Exception as e:
                    cause = str(e) or type(e).__name__
                    message.causes.append(cause)
                    if not is_recoverable_error(e):
                        logger.error(
                            "delivery_terminal_error",
                            extra={
                                "target": mask_target(message.target),
                                "attempt": message.attempt,
                                "error": type(e).__name__,
                            },
                        )
                        return self._terminal(message, correlation_id, degraded)
                else:
                    message_id = _extract_message_id(response)
                    logger.info(
                        "message_delivered",
                        extra={
                            "target": mask_target(message.target),
                            "attempts": message.attempt,
                            "degraded": degraded,
                            "message_id": message_id,
                        },
                    )
                    return DeliveryResult(
                        success=True,
                        message_id=message_id,
                        attempts=message.attempt,
                        degraded=degraded,
                        correlation_id=correlation_id,
                    )

            logger.warning(
                "delivery_attempt_failed",
                extra={
                    "target": mask_target(message.target),
                    "attempt": message.attempt,
                    "max_attempts": message.max_attempts,
                    "cause": message.causes[-1],
                },
            )
            if message.attempt >= message.max_attempts:
                break
            if message.attempt == 1:
                await self._machine.reestablish()
            await asyncio.sleep(settings.delivery_retry_delay_seconds)

        return self._terminal(message, correlation_id, degraded)

    async def _ensure_ready(self) -> str | None:
        """Retorna "ready", "degraded" ou None (não pronto)."""
        if self._machine.is_ready:
            return "ready"
        grace = self._settings.delivery_readiness_grace_seconds
        if await self._machine.wait_until_ready(grace):
            return "ready"
        if self._transport.can_send:
            log_fallback(logger, "delivery", reason="session_not_open_send_capable")
            return "degraded"
        return None

    def _terminal(
        self, message: OutboundMessage, correlation_id: str, degraded: bool
    ) -> DeliveryResult:
        last_cause = message.causes[-1] if message.causes else "unknown error"
        logger.error(
            "delivery_failed",
            extra={
                "target": mask_target(message.target),
                "attempts": message.attempt,
                "cause": last_cause,
            },
        )
        return DeliveryResult(
            success=False,
            attempts=message.attempt,
            degraded=degraded,
            error_code=DeliveryErrorCode.TERMINAL,
            error_message=last_cause,
            correlation_id=correlation_id,
        )


def _extract_message_id(response: dict[str, Any] | None) -> str | None:
    if not response:
        return None
    key = response.get("key")
    if isinstance(key, dict):
        return key.get("id")
    return response.get("id")
