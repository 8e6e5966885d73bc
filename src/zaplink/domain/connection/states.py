"""Estados canônicos da conexão.

- Exatamente um estado por processo, pertencente ao SessionStateMachine
- Mutado apenas pelo loop serializado de eventos (single-writer)
- Estados terminais só saem via reset_session()
"""

from __future__ import annotations

from enum import StrEnum


class ConnectionState(StrEnum):
    """8 estados canônicos da conexão."""

    IDLE = "IDLE"
    """Nada em andamento; aguardando start()."""

    INITIALIZING = "INITIALIZING"
    """Credenciais carregadas, transporte abrindo."""

    AWAITING_PAIRING = "AWAITING_PAIRING"
    """QR emitido; aguardando leitura no aparelho."""

    OPEN = "OPEN"
    """Conexão confirmada pelo transporte; pronta para envio."""

    CLOSING = "CLOSING"
    """Encerramento gracioso em andamento (shutdown)."""

    RECONNECTING = "RECONNECTING"
    """Aguardando delay de backoff antes de reabrir."""

    LOGGED_OUT = "LOGGED_OUT"
    """Sessão encerrada remotamente; novo pareamento exigido."""

    FAILED = "FAILED"
    """Falha permanente (credenciais corrompidas ou tentativas esgotadas)."""


TERMINAL_STATES = frozenset({
    ConnectionState.LOGGED_OUT,
    ConnectionState.FAILED,
})
"""Estados que só saem via reset_session()."""

STARTABLE_STATES = frozenset({ConnectionState.IDLE})
"""Estados a partir dos quais start() inicia um novo ciclo."""

IN_FLIGHT_STATES = frozenset({
    ConnectionState.INITIALIZING,
    ConnectionState.AWAITING_PAIRING,
    ConnectionState.RECONNECTING,
})
"""Estados com sequência de inicialização em andamento (reentrância ignorada)."""

PAIRING_STATES = frozenset({
    ConnectionState.INITIALIZING,
    ConnectionState.AWAITING_PAIRING,
})
"""Estados em que QR e connectionOpened são aceitos."""
