"""Configuração de logging estruturado (JSON)."""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from zaplink.observability.context import get_correlation_id

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(session_id)s] %(message)s"


class SessionContextFilter(logging.Filter):
    """Insere correlation_id, service e session_id no record de log.

    Importante: nunca adicionar credenciais, QR ou telefone completo nos logs.
    """

    def __init__(self, service_name: str, session_id: str = "") -> None:
        super().__init__()
        self._service_name = service_name
        self._session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        # Preserve correlation_id passed explicitly via `extra` when present.
        existing = getattr(record, "correlation_id", None)
        record.correlation_id = existing if existing else get_correlation_id()
        record.service = self._service_name
        if not getattr(record, "session_id", None):
            record.session_id = self._session_id
        return True


def configure_logging(
    level: str,
    service_name: str,
    log_format: str = "json",
    session_id: str = "",
) -> None:
    """Configura logging JSON (ou texto em dev) com campos padrão do serviço."""

    if log_format == "text":
        formatter: logging.Formatter = logging.Formatter(_TEXT_FORMAT)
    else:
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s "
            "%(correlation_id)s %(service)s %(session_id)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SessionContextFilter(service_name, session_id))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    """Retorna logger simples; o filtro injeta service/correlation_id."""

    return logging.getLogger(name)


def mask_target(target: str | None) -> str:
    """Mascara destino (telefone/JID) para logs: mantém só os 4 últimos dígitos."""
    if not target:
        return ""
    local = target.split("@", 1)[0]
    if len(local) <= 4:
        return "***"
    return f"***{local[-4:]}"


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
) -> None:
    """Log observável de modo degradado usado (sem PII).

    Args:
        logger: Logger instance
        component: Nome do componente (ex: "delivery")
        reason: Razão do fallback (ex: "not_ready") (sem PII)
        elapsed_ms: Tempo decorrido em ms (quando aplicável)
    """
    extra: dict[str, object] = {
        "fallback_used": True,
        "component": component,
    }
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms

    logger.info(
        f"Fallback applied for {component}",
        extra=extra,
    )
