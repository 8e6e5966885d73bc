"""Configurações centralizadas do zaplink.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes do serviço (WHATSAPP_USER_SERVER, DEFAULT_SESSION_ID)

Uso típico:
    from zaplink.config import get_settings
"""

from zaplink.config.settings import (
    DEFAULT_SESSION_ID,
    WHATSAPP_USER_SERVER,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_SESSION_ID",
    "WHATSAPP_USER_SERVER",
]
