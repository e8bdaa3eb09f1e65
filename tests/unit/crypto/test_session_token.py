"""Tests for signed session tokens."""

import json

import pytest

from hfmcp.crypto.session_token import SessionTokenCodec, b64url_decode, b64url_encode
from tests.support import SESSION_SECRET


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock(1_700_000_000)


@pytest.fixture
def codec(clock: _Clock) -> SessionTokenCodec:
    return SessionTokenCodec(SESSION_SECRET, ttl_seconds=3600, clock=clock)


class TestIssueAndVerify:
    """Tests for the happy path."""

    def test_fresh_token_is_valid(self, codec: SessionTokenCodec) -> None:
        token = codec.issue("2025-11-25", ["tools", "resources"])
        result = codec.verify(token)
        assert result.valid
        assert result.payload is not None
        assert result.payload.v == "2025-11-25"
        assert result.payload.caps == "resources,tools"
        assert result.payload.exp - result.payload.iat == 3600

    def test_token_has_two_segments(self, codec: SessionTokenCodec) -> None:
        assert codec.issue("2025-11-25", []).count(".") == 1


class TestRejections:
    """Tests for each failure reason."""

    def test_missing(self, codec: SessionTokenCodec) -> None:
        assert codec.verify("").reason == "missing"
        assert codec.verify(None).reason == "missing"

    @pytest.mark.parametrize("token", ["abc", "a.b.c"])
    def test_wrong_segment_count_is_malformed(
        self, codec: SessionTokenCodec, token: str
    ) -> None:
        assert codec.verify(token).reason == "malformed"

    def test_tampered_body_is_invalid(self, codec: SessionTokenCodec) -> None:
        body, sig = codec.issue("2025-11-25", ["tools"]).split(".")
        payload = json.loads(b64url_decode(body))
        payload["exp"] += 10_000
        forged = b64url_encode(json.dumps(payload).encode())
        assert codec.verify(f"{forged}.{sig}").reason == "invalid"

    def test_tampered_signature_is_invalid(self, codec: SessionTokenCodec) -> None:
        body, sig = codec.issue("2025-11-25", ["tools"]).split(".")
        flipped = "A" if sig[0] != "A" else "B"
        assert codec.verify(f"{body}.{flipped}{sig[1:]}").reason == "invalid"

    def test_other_secret_is_invalid(self, codec: SessionTokenCodec) -> None:
        token = SessionTokenCodec("x" * 40).issue("2025-11-25", [])
        assert codec.verify(token).reason == "invalid"

    def test_expired_after_ttl(self, codec: SessionTokenCodec, clock: _Clock) -> None:
        token = codec.issue("2025-11-25", ["tools"])
        clock.now += 3601
        assert codec.verify(token).reason == "expired"

    def test_still_valid_at_ttl_boundary(
        self, codec: SessionTokenCodec, clock: _Clock
    ) -> None:
        token = codec.issue("2025-11-25", ["tools"])
        clock.now += 3600
        assert codec.verify(token).valid

    def test_signed_garbage_is_malformed(self, codec: SessionTokenCodec) -> None:
        body = b64url_encode(b'{"v": "2025-11-25"}')
        token = f"{body}.{codec._sign(body)}"
        assert codec.verify(token).reason == "malformed"

    def test_version_mismatch_is_invalid(self, codec: SessionTokenCodec) -> None:
        token = codec.issue("2024-11-05", ["tools"])
        assert codec.verify(token).reason == "invalid"


class TestBase64Url:
    """Tests for the unpadded base64url helpers."""

    def test_round_trip_without_padding(self) -> None:
        encoded = b64url_encode(b"\xff\xfe")
        assert "=" not in encoded
        assert b64url_decode(encoded) == b"\xff\xfe"

    def test_rejects_non_canonical(self) -> None:
        with pytest.raises(ValueError):
            b64url_decode("AB")
