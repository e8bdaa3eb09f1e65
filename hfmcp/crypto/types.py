"""Type definitions for session token operations."""

from typing import Literal

from pydantic import BaseModel

SessionFailure = Literal["missing", "malformed", "invalid", "expired"]


class SessionPayload(BaseModel):
    """Signed body of a session token."""

    v: str
    iat: int
    exp: int
    caps: str = ""


class SessionVerification(BaseModel):
    """Outcome of verifying a session token."""

    valid: bool
    payload: SessionPayload | None = None
    reason: SessionFailure | None = None
