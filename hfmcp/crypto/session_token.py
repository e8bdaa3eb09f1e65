"""Stateless HMAC-SHA256 session tokens for MCP traffic.

Token format: ``base64url(json payload) "." base64url(signature)``. Nothing
is stored server-side; a token is valid until it expires.
"""

import base64
import binascii
import json
import time
from collections.abc import Callable, Iterable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from hfmcp.core.settings import MCP_PROTOCOL_VERSION
from hfmcp.crypto.types import SessionPayload, SessionVerification

SESSION_TTL_SECONDS = 3600
REQUIRED_FIELDS = ("v", "iat", "exp")


def b64url_encode(raw: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Decode unpadded base64url, rejecting non-canonical encodings."""
    padded = text + "=" * (-len(text) % 4)
    raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    if b64url_encode(raw) != text:
        raise ValueError("Non-canonical base64url")
    return raw


class SessionTokenCodec:
    """Issues and verifies signed session tokens."""

    def __init__(
        self,
        secret: str,
        protocol_version: str = MCP_PROTOCOL_VERSION,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._key: bytes | None = None
        self._protocol_version = protocol_version
        self._ttl = ttl_seconds
        self._clock = clock

    def _get_key(self) -> bytes:
        if self._key is None:
            self._key = self._secret.encode()
        return self._key

    def _mac(self) -> hmac.HMAC:
        return hmac.HMAC(self._get_key(), hashes.SHA256())

    def _sign(self, data: str) -> str:
        mac = self._mac()
        mac.update(data.encode("ascii"))
        return b64url_encode(mac.finalize())

    def _signature_matches(self, data: str, signature_b64: str) -> bool:
        try:
            signature = b64url_decode(signature_b64)
            mac = self._mac()
            mac.update(data.encode("ascii"))
            mac.verify(signature)
        except (InvalidSignature, binascii.Error, ValueError):
            return False
        return True

    def issue(self, protocol_version: str, capabilities: Iterable[str]) -> str:
        """Create a token advertising the given capabilities."""
        now = int(self._clock())
        payload = SessionPayload(
            v=protocol_version,
            iat=now,
            exp=now + self._ttl,
            caps=",".join(sorted(capabilities)),
        )
        body = b64url_encode(
            json.dumps(payload.model_dump(), separators=(",", ":")).encode()
        )
        return f"{body}.{self._sign(body)}"

    def verify(self, token: str | None) -> SessionVerification:
        """Check signature, shape, expiry and protocol version, in that order."""
        if not token:
            return SessionVerification(valid=False, reason="missing")

        parts = token.split(".")
        if len(parts) != 2:
            return SessionVerification(valid=False, reason="malformed")
        body, signature = parts

        if not self._signature_matches(body, signature):
            return SessionVerification(valid=False, reason="invalid")

        try:
            raw = json.loads(b64url_decode(body))
        except (ValueError, UnicodeDecodeError):
            return SessionVerification(valid=False, reason="malformed")
        if not isinstance(raw, dict) or any(not raw.get(f) for f in REQUIRED_FIELDS):
            return SessionVerification(valid=False, reason="malformed")
        try:
            payload = SessionPayload.model_validate(raw)
        except ValueError:
            return SessionVerification(valid=False, reason="malformed")

        if payload.exp < int(self._clock()):
            return SessionVerification(valid=False, reason="expired")
        if payload.v != self._protocol_version:
            return SessionVerification(valid=False, reason="invalid")

        return SessionVerification(valid=True, payload=payload)
