"""Constants and builders shared by the test modules."""

import base64
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.db.models_kv import KeyValueEntity
from hfmcp.oauth.types import AVAILABLE_SCOPES, GrantCredentials, GrantProps

SESSION_SECRET = "s" * 48
CIPHER_KEY = base64.b64encode(bytes(range(32))).decode()
HAPPYFOX_BASE = "https://acme.happyfox.com/api/1.1/json"
CLIENT_ID = "https://client.example.com/oauth/metadata.json"
REDIRECT_URI = "https://client.example.com/callback"
STAFF_ID = 42
STAFF_EMAIL = "agent@acme.test"
MCP_HEADERS = {
    "MCP-Protocol-Version": "2025-11-25",
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}

Route = httpx.Response | Callable[[httpx.Request], httpx.Response]
GrantFactory = Callable[..., Awaitable[str]]


class FakeUpstream:
    """MockTransport handler serving canned responses by method and URL."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, route: Route) -> None:
        self.routes[(method, url)] = route

    def json(self, method: str, url: str, body: Any, status_code: int = 200) -> None:
        self.add(method, url, httpx.Response(status_code, json=body))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url.copy_with(query=None))
        route = self.routes.get((request.method, url))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        return route


def client_metadata(**overrides: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "client_id": CLIENT_ID,
        "client_name": "Example Agent",
        "redirect_uris": [REDIRECT_URI],
    }
    doc.update(overrides)
    return doc


def staff_directory() -> list[dict[str, Any]]:
    return [
        {"id": 7, "name": "Other Agent", "email": "other@acme.test", "is_active": True},
        {"id": STAFF_ID, "name": "Agent Smith", "email": "Agent@Acme.test", "is_active": True},
        {"id": 9, "name": "Gone Agent", "email": "gone@acme.test", "is_active": False},
    ]


def make_credentials(expires_in: int = 3600) -> GrantCredentials:
    now = int(time.time())
    return GrantCredentials(
        api_key="key-123",
        auth_code="code-456",
        account_name="acme",
        region="us",
        staff_id=STAFF_ID,
        staff_name="Agent Smith",
        staff_email=STAFF_EMAIL,
        created_at=now,
        expires_at=now + expires_in,
    )


def make_props(grant_id: str = "grant-1", scopes: list[str] | None = None) -> GrantProps:
    return GrantProps(
        grant_id=grant_id,
        staff_id=STAFF_ID,
        staff_email=STAFF_EMAIL,
        account_name="acme",
        region="us",
        scopes=list(AVAILABLE_SCOPES) if scopes is None else scopes,
    )


async def kv_exists(session: AsyncSession, key: str) -> bool:
    """True if a kv row exists for key, expired or not."""
    stmt = select(KeyValueEntity.key).where(KeyValueEntity.key == key)
    result = await session.execute(stmt)
    return result.scalar_one_or_none() is not None
