"""Testes para a política de reconexão (função pura next_delay)."""

from __future__ import annotations

import pytest

from zaplink.application.reconnect import (
    EXHAUSTED,
    ReconnectPolicy,
    ReconnectScheduler,
    next_delay,
)
from zaplink.config.settings import Settings
from zaplink.domain.connection.disconnect import DisconnectKind


class TestNextDelay:
    """Testes para next_delay com a política padrão."""

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(0, 3.0), (1, 6.0), (2, 15.0), (3, 20.0), (4, 25.0)],
    )
    def test_transient_delays_follow_two_tiers(self, attempt: int, expected: float) -> None:
        """Tentativas 0..1 usam 3s, demais usam 5s, multiplicados por attempt+1."""
        assert next_delay(attempt, DisconnectKind.TRANSIENT) == expected

    def test_protocol_rejected_doubles_delay(self) -> None:
        """ProtocolRejected aplica o multiplicador padrão (2x)."""
        delays = [next_delay(a, DisconnectKind.PROTOCOL_REJECTED) for a in range(5)]
        assert delays == [6.0, 12.0, 30.0, 40.0, 50.0]

    def test_exhausted_at_max_attempts(self) -> None:
        """attempt >= max_attempts retorna EXHAUSTED."""
        assert next_delay(5, DisconnectKind.TRANSIENT) is EXHAUSTED
        assert next_delay(9, DisconnectKind.PROTOCOL_REJECTED) is EXHAUSTED

    def test_negative_attempt_rejected(self) -> None:
        with pytest.raises(ValueError):
            next_delay(-1, DisconnectKind.TRANSIENT)

    def test_monotonic_within_each_tier(self) -> None:
        """Delay nunca diminui com attempt dentro do mesmo tier."""
        policy = ReconnectPolicy()
        for kind in DisconnectKind:
            fast = [next_delay(a, kind, policy) for a in range(policy.fast_tier_attempts)]
            slow = [
                next_delay(a, kind, policy)
                for a in range(policy.fast_tier_attempts, policy.max_attempts)
            ]
            assert fast == sorted(fast)
            assert slow == sorted(slow)

    def test_protocol_rejected_never_shorter_than_transient(self) -> None:
        for attempt in range(ReconnectPolicy().max_attempts):
            assert next_delay(attempt, DisconnectKind.PROTOCOL_REJECTED) >= next_delay(
                attempt, DisconnectKind.TRANSIENT
            )

    def test_is_deterministic(self) -> None:
        assert next_delay(3, DisconnectKind.AUTH_EXPIRED) == next_delay(
            3, DisconnectKind.AUTH_EXPIRED
        )


class TestReconnectScheduler:
    """Testes para o wrapper configurável."""

    def test_policy_from_settings(self) -> None:
        settings = Settings(
            reconnect_max_attempts=2,
            reconnect_fast_tier_seconds=0.1,
            reconnect_slow_tier_seconds=0.2,
            protocol_rejected_backoff_multiplier=3.0,
        )
        scheduler = ReconnectScheduler(ReconnectPolicy.from_settings(settings))

        assert scheduler.max_attempts == 2
        assert scheduler.next_delay(0, DisconnectKind.PROTOCOL_REJECTED) == pytest.approx(0.3)
        assert scheduler.next_delay(2, DisconnectKind.TRANSIENT) is EXHAUSTED

    def test_default_policy(self) -> None:
        scheduler = ReconnectScheduler()
        assert scheduler.max_attempts == 5
        assert scheduler.next_delay(0, DisconnectKind.TRANSIENT) == 3.0
