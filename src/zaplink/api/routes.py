"""Rotas HTTP de controle da sessão e envio de mensagens."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from zaplink.api.dependencies import get_delivery_manager, get_machine, get_settings
from zaplink.application.connection.machine import SessionStateMachine
from zaplink.application.delivery import DeliveryManager
from zaplink.config.settings import Settings
from zaplink.domain.errors import DeliveryErrorCode
from zaplink.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

# DeliveryErrorCode → status HTTP
_DELIVERY_STATUS = {
    DeliveryErrorCode.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DeliveryErrorCode.NOT_READY: status.HTTP_503_SERVICE_UNAVAILABLE,
    DeliveryErrorCode.TERMINAL: status.HTTP_502_BAD_GATEWAY,
}


class SendMessageRequest(BaseModel):
    """Corpo de POST /messages (validação fica no DeliveryManager)."""

    to: str = ""
    text: str = ""


@router.get("/health")
def health(
    settings: Settings = Depends(get_settings),
    machine: SessionStateMachine = Depends(get_machine),
) -> dict[str, str]:
    """Healthcheck simples."""
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.version,
        "session_state": machine.get_status().state.value,
    }


@router.get("/session/status")
def session_status(machine: SessionStateMachine = Depends(get_machine)) -> dict[str, Any]:
    return machine.get_status().model_dump(mode="json")


@router.get("/session/diagnostics")
def session_diagnostics(machine: SessionStateMachine = Depends(get_machine)) -> dict[str, Any]:
    return machine.get_diagnostics().model_dump(mode="json")


@router.get("/session/qr")
def session_qr(machine: SessionStateMachine = Depends(get_machine)) -> dict[str, Any]:
    """QR corrente; 404 quando não há pareamento pendente."""
    qr = machine.pairing_challenge
    if qr is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="qr_not_available")
    return {"qr": qr, "state": machine.get_status().state.value}


@router.post("/session/start")
async def session_start(machine: SessionStateMachine = Depends(get_machine)) -> dict[str, Any]:
    await machine.start()
    return machine.get_status().model_dump(mode="json")


@router.post("/session/reset")
async def session_reset(machine: SessionStateMachine = Depends(get_machine)) -> dict[str, Any]:
    """Apaga credenciais e volta a IDLE (próximo start exige novo QR)."""
    await machine.reset_session()
    logger.info("session_reset_requested")
    return machine.get_status().model_dump(mode="json")


@router.post("/session/pairing")
async def session_pairing(
    timeout: float | None = Query(None, gt=0, le=300),
    machine: SessionStateMachine = Depends(get_machine),
) -> JSONResponse:
    """Força novo pareamento e devolve o primeiro QR gerado."""
    result = await machine.request_new_pairing(timeout)
    code = status.HTTP_200_OK if result.success else status.HTTP_504_GATEWAY_TIMEOUT
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@router.post("/messages")
async def send_message(
    body: SendMessageRequest,
    delivery: DeliveryManager = Depends(get_delivery_manager),
) -> JSONResponse:
    result = await delivery.send(body.to, body.text)
    if result.success:
        code = status.HTTP_200_OK
    else:
        code = _DELIVERY_STATUS.get(result.error_code, status.HTTP_502_BAD_GATEWAY)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))
