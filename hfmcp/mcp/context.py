"""Per-request authenticated context built from the bearer access token."""

import logging

from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.mcp.jsonrpc import (
    AUTHENTICATION_REQUIRED,
    CREDENTIALS_NOT_FOUND,
    JsonRpcError,
)
from hfmcp.oauth.credential_store import CredentialStore
from hfmcp.oauth.token_service import resolve_access_token
from hfmcp.oauth.types import GrantCredentials

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class AuthenticationError(JsonRpcError):
    """Bearer token or grant credentials unusable. Always HTTP 401."""

    status_code = 401


class AuthenticatedContext(BaseModel):
    """Identity, scopes and credentials for one request. Immutable."""

    model_config = ConfigDict(frozen=True)

    grant_id: str
    scopes: tuple[str, ...]
    staff_id: int
    staff_email: str
    credentials: GrantCredentials


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


async def resolve_context(
    session: AsyncSession,
    store: CredentialStore,
    authorization: str | None,
) -> AuthenticatedContext:
    """Access token -> grant -> decrypted credentials.

    A missing or dead token and a live token whose credentials are gone are
    reported with different codes.
    """
    token = bearer_token(authorization)
    if token is None:
        raise AuthenticationError(
            AUTHENTICATION_REQUIRED, "Authentication required: missing bearer token"
        )

    props = await resolve_access_token(session, token)
    if props is None:
        logger.warning("Rejected unknown or expired access token")
        raise AuthenticationError(
            AUTHENTICATION_REQUIRED, "Authentication required: invalid or expired token"
        )

    credentials = await store.retrieve(props.grant_id)
    if credentials is None:
        logger.warning("No stored credentials for grant of staff %s", props.staff_id)
        raise AuthenticationError(
            CREDENTIALS_NOT_FOUND,
            "Credentials not found for this grant. Please re-authorize.",
        )

    return AuthenticatedContext(
        grant_id=props.grant_id,
        scopes=tuple(props.scopes),
        staff_id=props.staff_id,
        staff_email=props.staff_email,
        credentials=credentials,
    )
