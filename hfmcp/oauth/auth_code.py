"""Authorization code creation and redemption with PKCE."""

import hashlib
import secrets
from base64 import urlsafe_b64encode
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.core.settings import AUTH_CODE_TTL_DEFAULT
from hfmcp.db.models_oauth import AuthorizationCodeEntity
from hfmcp.db.timeutil import is_past
from hfmcp.oauth.types import GrantProps


class AuthCodeParams(BaseModel):
    """Parameters for creating an authorization code."""

    client_id: str
    redirect_uri: str
    code_challenge: str
    props: GrantProps
    ttl_seconds: int = AUTH_CODE_TTL_DEFAULT


def generate_code() -> str:
    """Generate a cryptographically random authorization code."""
    return secrets.token_urlsafe(32)


def verify_pkce(code_verifier: str, code_challenge: str) -> bool:
    """Verify S256 PKCE: SHA256(verifier) == challenge."""
    if not code_verifier:
        return False
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    computed = urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return secrets.compare_digest(computed, code_challenge)


async def create_authorization_code(
    session: AsyncSession, params: AuthCodeParams
) -> str:
    """Create and store a new authorization code for a completed grant."""
    code = generate_code()
    entity = AuthorizationCodeEntity(
        code=code,
        client_id=params.client_id,
        redirect_uri=params.redirect_uri,
        code_challenge=params.code_challenge,
        code_challenge_method="S256",
        grant_props=params.props.model_dump(),
        expires_at=datetime.now(UTC) + timedelta(seconds=params.ttl_seconds),
        used=False,
    )
    session.add(entity)
    await session.flush()
    return code


def _is_code_invalid(
    entity: AuthorizationCodeEntity,
    client_id: str,
    redirect_uri: str,
    code_verifier: str,
) -> bool:
    """Return True if the code cannot be redeemed."""
    if entity.used or entity.client_id != client_id:
        return True
    if entity.redirect_uri != redirect_uri:
        return True
    if is_past(entity.expires_at):
        return True
    return not verify_pkce(code_verifier, entity.code_challenge)


async def redeem_authorization_code(
    session: AsyncSession,
    *,
    code: str,
    client_id: str,
    redirect_uri: str,
    code_verifier: str,
) -> GrantProps | None:
    """Redeem an auth code. Returns the grant it carries, or None if invalid."""
    stmt = select(AuthorizationCodeEntity).where(AuthorizationCodeEntity.code == code)
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()

    if entity is None:
        return None
    if _is_code_invalid(entity, client_id, redirect_uri, code_verifier):
        return None

    entity.used = True
    await session.flush()
    return GrantProps.model_validate(entity.grant_props)
