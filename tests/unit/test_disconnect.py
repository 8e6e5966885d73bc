"""Testes para classificação de desconexões."""

from __future__ import annotations

import pytest

from zaplink.domain.connection.disconnect import (
    DisconnectKind,
    DisconnectReason,
    classify_disconnect,
)


class TestClassifyDisconnect:
    """Testes para classify_disconnect."""

    @pytest.mark.parametrize("code", [401, 403, 419])
    def test_auth_codes_are_auth_expired(self, code: int) -> None:
        reason = classify_disconnect(code)
        assert reason.kind == DisconnectKind.AUTH_EXPIRED
        assert reason.code == code
        assert reason.wipes_credentials is True
        assert reason.should_reconnect is True

    @pytest.mark.parametrize("code", [405, 426])
    def test_protocol_codes_are_protocol_rejected(self, code: int) -> None:
        reason = classify_disconnect(code, "Method Not Allowed")
        assert reason.kind == DisconnectKind.PROTOCOL_REJECTED
        assert reason.wipes_credentials is False

    @pytest.mark.parametrize(
        ("code", "message"),
        [(401, "Stream Errored (logged out)"), (None, "Logged Out"), (403, "device_logout")],
    )
    def test_logout_message_is_logged_out(self, code: int | None, message: str) -> None:
        reason = classify_disconnect(code, message)
        assert reason.kind == DisconnectKind.LOGGED_OUT
        assert reason.should_reconnect is False

    def test_logout_message_with_other_code_is_transient(self) -> None:
        """Mensagem de logout só vale para códigos de autorização."""
        assert classify_disconnect(500, "logged out").kind == DisconnectKind.TRANSIENT

    @pytest.mark.parametrize("code", [None, 408, 428, 500, 503, 515])
    def test_other_codes_are_transient(self, code: int | None) -> None:
        reason = classify_disconnect(code, "")
        assert reason.kind == DisconnectKind.TRANSIENT
        assert reason.cause

    def test_transient_keeps_message_as_cause(self) -> None:
        reason = classify_disconnect(428, "Connection Terminated")
        assert reason.cause == "Connection Terminated"


class TestDisconnectReason:
    def test_describe_includes_code_and_cause(self) -> None:
        reason = DisconnectReason.auth_expired(401, "expired")
        assert reason.describe() == "AUTH_EXPIRED:401:expired"

    def test_describe_without_code(self) -> None:
        assert DisconnectReason.transient("pairing timeout").describe() == (
            "TRANSIENT:pairing timeout"
        )
