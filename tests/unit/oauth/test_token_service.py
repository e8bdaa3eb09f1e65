"""Tests for opaque token issuance, refresh and resolution."""

from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.oauth.credential_store import CredentialStore
from hfmcp.oauth.token_service import (
    TokenIssuanceParams,
    hash_token,
    issue_tokens,
    refresh_tokens,
    resolve_access_token,
)
from tests.support import CLIENT_ID, make_credentials, make_props

PARAMS = TokenIssuanceParams(client_id=CLIENT_ID)


class TestIssueTokens:
    """Tests for issue_tokens / resolve_access_token."""

    async def test_access_token_resolves_to_grant(self, db_session: AsyncSession) -> None:
        tokens = await issue_tokens(db_session, PARAMS, make_props())
        assert tokens.token_type == "Bearer"
        assert tokens.expires_in == 3600
        assert tokens.scope == "happyfox:read happyfox:write happyfox:admin"
        assert await resolve_access_token(db_session, tokens.access_token) == make_props()

    async def test_unknown_token(self, db_session: AsyncSession) -> None:
        assert await resolve_access_token(db_session, "nope") is None

    async def test_expired_token(self, db_session: AsyncSession) -> None:
        params = TokenIssuanceParams(client_id=CLIENT_ID, access_ttl=-1)
        tokens = await issue_tokens(db_session, params, make_props())
        assert await resolve_access_token(db_session, tokens.access_token) is None

    def test_hash_is_stable_hex(self) -> None:
        assert hash_token("abc") == hash_token("abc")
        assert len(hash_token("abc")) == 64


class TestRefreshTokens:
    """Tests for refresh_tokens."""

    async def test_rotates_pair_and_renews_credentials(
        self, db_session: AsyncSession, store: CredentialStore
    ) -> None:
        await store.store("grant-1", make_credentials(expires_in=60))
        first = await issue_tokens(db_session, PARAMS, make_props())

        second = await refresh_tokens(db_session, PARAMS, first.refresh_token, store)

        assert second is not None
        assert second.access_token != first.access_token
        assert await resolve_access_token(db_session, first.access_token) is None
        assert await resolve_access_token(db_session, second.access_token) is not None
        renewed = await store.retrieve("grant-1")
        assert renewed is not None
        assert renewed.expires_at > make_credentials(expires_in=60).expires_at

    async def test_old_refresh_token_is_single_use(
        self, db_session: AsyncSession, store: CredentialStore
    ) -> None:
        await store.store("grant-1", make_credentials())
        first = await issue_tokens(db_session, PARAMS, make_props())
        assert await refresh_tokens(db_session, PARAMS, first.refresh_token, store)
        assert await refresh_tokens(db_session, PARAMS, first.refresh_token, store) is None

    async def test_fails_when_credentials_gone(
        self, db_session: AsyncSession, store: CredentialStore
    ) -> None:
        first = await issue_tokens(db_session, PARAMS, make_props())
        assert await refresh_tokens(db_session, PARAMS, first.refresh_token, store) is None

    async def test_wrong_client(
        self, db_session: AsyncSession, store: CredentialStore
    ) -> None:
        await store.store("grant-1", make_credentials())
        first = await issue_tokens(db_session, PARAMS, make_props())
        other = TokenIssuanceParams(client_id="https://other.test/m.json")
        assert await refresh_tokens(db_session, other, first.refresh_token, store) is None
