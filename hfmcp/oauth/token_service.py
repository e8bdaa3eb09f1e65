"""Opaque OAuth token issuance, refresh, and resolution."""

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

import uuid_utils
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.core.settings import ACCESS_TOKEN_TTL_DEFAULT, REFRESH_TOKEN_TTL_DEFAULT
from hfmcp.db.models_oauth import OAuthTokenEntity
from hfmcp.db.timeutil import is_past
from hfmcp.oauth.credential_store import CredentialStore
from hfmcp.oauth.types import GrantProps, TokenResponse

logger = logging.getLogger(__name__)


class TokenIssuanceParams(BaseModel):
    """Bundled parameters for token issuance and refresh."""

    client_id: str
    access_ttl: int = ACCESS_TOKEN_TTL_DEFAULT
    refresh_ttl: int = REFRESH_TOKEN_TTL_DEFAULT


def generate_token() -> str:
    """Generate a cryptographically random opaque token."""
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    """SHA-256 hash a token for database storage."""
    return hashlib.sha256(token.encode()).hexdigest()


async def issue_tokens(
    session: AsyncSession, params: TokenIssuanceParams, props: GrantProps
) -> TokenResponse:
    """Create and store an access + refresh token pair for a grant."""
    access = generate_token()
    refresh = generate_token()
    now = datetime.now(UTC)

    entity = OAuthTokenEntity(
        id=str(uuid_utils.uuid7()),
        client_id=params.client_id,
        grant_id=props.grant_id,
        access_token_hash=hash_token(access),
        refresh_token_hash=hash_token(refresh),
        grant_props=props.model_dump(),
        expires_at=now + timedelta(seconds=params.access_ttl),
        refresh_expires_at=now + timedelta(seconds=params.refresh_ttl),
        revoked=False,
    )
    session.add(entity)
    await session.flush()

    return TokenResponse(
        access_token=access,
        token_type="Bearer",
        expires_in=params.access_ttl,
        refresh_token=refresh,
        scope=" ".join(props.scopes),
    )


async def refresh_tokens(
    session: AsyncSession,
    params: TokenIssuanceParams,
    refresh_token: str,
    store: CredentialStore,
) -> TokenResponse | None:
    """Rotate a refresh token and extend the grant's credential lifetime.

    Fails when the grant's credentials are gone, so the client re-consents.
    """
    stmt = select(OAuthTokenEntity).where(
        OAuthTokenEntity.refresh_token_hash == hash_token(refresh_token),
        OAuthTokenEntity.client_id == params.client_id,
        OAuthTokenEntity.revoked.is_(False),
    )
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()

    if entity is None:
        return None
    if entity.refresh_expires_at and is_past(entity.refresh_expires_at):
        return None

    entity.revoked = True
    await session.flush()

    if not await store.renew(entity.grant_id):
        logger.warning("Refresh rejected: credentials for grant are gone")
        return None

    props = GrantProps.model_validate(entity.grant_props)
    return await issue_tokens(session, params, props)


async def resolve_access_token(session: AsyncSession, token: str) -> GrantProps | None:
    """Map a bearer access token to the grant it was issued for."""
    stmt = select(OAuthTokenEntity).where(
        OAuthTokenEntity.access_token_hash == hash_token(token),
        OAuthTokenEntity.revoked.is_(False),
    )
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()
    if entity is None or is_past(entity.expires_at):
        return None
    return GrantProps.model_validate(entity.grant_props)
