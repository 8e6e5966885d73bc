"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from zaplink.application.connection.machine import SessionStateMachine
from zaplink.application.delivery import DeliveryManager
from zaplink.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_machine(request: Request) -> SessionStateMachine:
    """Retorna a máquina de estados da sessão."""

    return request.app.state.machine


def get_delivery_manager(request: Request) -> DeliveryManager:
    return request.app.state.delivery_manager
