"""Shared test fixtures for hfmcp."""

from collections.abc import AsyncIterator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hfmcp.core.app import create_app
from hfmcp.core.deps import get_http_client
from hfmcp.crypto.cipher import CredentialCipher
from hfmcp.db.base import BaseEntity
from hfmcp.db.engine import get_session
from hfmcp.oauth.credential_store import CredentialStore
from hfmcp.oauth.token_service import TokenIssuanceParams, issue_tokens
from tests.support import (
    CIPHER_KEY,
    CLIENT_ID,
    SESSION_SECRET,
    FakeUpstream,
    GrantFactory,
    make_credentials,
    make_props,
)


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("MCP_SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("MCP_CREDENTIAL_ENCRYPTION_KEY", CIPHER_KEY)
    monkeypatch.setenv("MCP_PLATFORM_MAX_RETRIES", "0")


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(CIPHER_KEY)


@pytest.fixture
def store(db_session: AsyncSession, cipher: CredentialCipher) -> CredentialStore:
    return CredentialStore(db_session, cipher)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def http_client(upstream: FakeUpstream) -> AsyncIterator[httpx.AsyncClient]:
    """Outbound client whose requests never leave the process."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle)) as hc:
        yield hc


@pytest.fixture
async def client(
    db_session: AsyncSession, http_client: httpx.AsyncClient
) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client with DB session and upstream overrides."""
    app = create_app()

    async def _override_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_http_client] = lambda: http_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_grant(db_session: AsyncSession, store: CredentialStore) -> GrantFactory:
    """Store credentials for a grant and return a fresh access token for it."""

    async def _make(
        grant_id: str = "grant-1",
        scopes: list[str] | None = None,
        with_credentials: bool = True,
    ) -> str:
        if with_credentials:
            await store.store(grant_id, make_credentials())
        tokens = await issue_tokens(
            db_session,
            TokenIssuanceParams(client_id=CLIENT_ID),
            make_props(grant_id, scopes),
        )
        await db_session.commit()
        return tokens.access_token

    return _make
