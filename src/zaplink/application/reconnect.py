"""Política de reconexão com backoff em dois tiers.

Função pura: determinística dado (attempt, motivo), sem side effects.

    attempt 0..1  → (attempt + 1) * 3s
    attempt >= 2  → (attempt + 1) * 5s
    ProtocolRejected multiplica o delay (padrão 2x)
    attempt >= max_attempts → EXHAUSTED (chamador mapeia para FAILED)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Final

from zaplink.domain.connection.disconnect import DisconnectKind

if TYPE_CHECKING:
    from zaplink.config.settings import Settings


class _Exhausted(Enum):
    EXHAUSTED = "EXHAUSTED"

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED: Final = _Exhausted.EXHAUSTED
"""Sentinela: tentativas de reconexão esgotadas."""


@dataclass(frozen=True)
class ReconnectPolicy:
    """Parâmetros do backoff com defaults do serviço."""

    max_attempts: int = 5
    fast_tier_attempts: int = 2
    fast_tier_seconds: float = 3.0
    slow_tier_seconds: float = 5.0
    protocol_rejected_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> ReconnectPolicy:
        return cls(
            max_attempts=settings.reconnect_max_attempts,
            fast_tier_attempts=settings.reconnect_fast_tier_attempts,
            fast_tier_seconds=settings.reconnect_fast_tier_seconds,
            slow_tier_seconds=settings.reconnect_slow_tier_seconds,
            protocol_rejected_multiplier=settings.protocol_rejected_backoff_multiplier,
        )


def next_delay(
    attempt: int,
    reason_kind: DisconnectKind,
    policy: ReconnectPolicy | None = None,
) -> float | _Exhausted:
    """Calcula o delay (segundos) antes da tentativa `attempt`.

    Args:
        attempt: Tentativas já feitas desde o último OPEN (0 = primeira)
        reason_kind: Classe do motivo da desconexão
        policy: Parâmetros (padrão: ReconnectPolicy())

    Returns:
        Delay em segundos ou EXHAUSTED
    """
    policy = policy or ReconnectPolicy()
    if attempt < 0:
        raise ValueError("attempt deve ser >= 0")
    if attempt >= policy.max_attempts:
        return EXHAUSTED

    tier = (
        policy.fast_tier_seconds
        if attempt < policy.fast_tier_attempts
        else policy.slow_tier_seconds
    )
    delay = (attempt + 1) * tier
    if reason_kind == DisconnectKind.PROTOCOL_REJECTED:
        delay *= policy.protocol_rejected_multiplier
    return delay


class ReconnectScheduler:
    """Wrapper com a política configurada (injetável em testes)."""

    def __init__(self, policy: ReconnectPolicy | None = None) -> None:
        self.policy = policy or ReconnectPolicy()

    @property
    def max_attempts(self) -> int:
        return self.policy.max_attempts

    def next_delay(self, attempt: int, reason_kind: DisconnectKind) -> float | _Exhausted:
        return next_delay(attempt, reason_kind, self.policy)
