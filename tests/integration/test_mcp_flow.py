"""Integration test: consent, token exchange and an MCP session end to end."""

import hashlib
import json
import re
from base64 import urlsafe_b64encode
from urllib.parse import parse_qs, urlencode, urlparse

import pytest
from httpx import AsyncClient

from tests.support import (
    CLIENT_ID,
    HAPPYFOX_BASE,
    MCP_HEADERS,
    REDIRECT_URI,
    FakeUpstream,
    client_metadata,
    staff_directory,
)

HTTP_OK = 200
HTTP_REDIRECT = 302

VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
CSRF_FIELD = re.compile(r'name="csrf_token" value="([^"]+)"')


def _make_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _rpc(method: str, request_id: int, **params) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}


@pytest.fixture(autouse=True)
def _upstream_routes(upstream: FakeUpstream) -> None:
    upstream.json("GET", CLIENT_ID, client_metadata())
    upstream.json("GET", f"{HAPPYFOX_BASE}/staff/", staff_directory())
    upstream.json(
        "GET", f"{HAPPYFOX_BASE}/ticket/7/", {"id": 7, "subject": "Printer on fire"}
    )
    upstream.json(
        "GET", f"{HAPPYFOX_BASE}/categories/", [{"id": 1, "name": "Support"}]
    )


async def _authorize(client: AsyncClient, scope: str) -> str:
    query = urlencode(
        {
            "response_type": "code",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URI,
            "scope": scope,
            "state": "flow-state",
            "code_challenge": _make_challenge(VERIFIER),
            "code_challenge_method": "S256",
        }
    )
    page = await client.get(f"/authorize?{query}")
    assert page.status_code == HTTP_OK
    match = CSRF_FIELD.search(page.text)
    assert match is not None
    csrf = match.group(1)

    resp = await client.post(
        f"/authorize?{query}",
        data={
            "csrf_token": csrf,
            "account_name": "acme",
            "api_key": "key-123",
            "auth_code": "code-456",
            "email": "agent@acme.test",
            "region": "us",
        },
        headers={"Cookie": f"csrf_token={csrf}"},
    )
    assert resp.status_code == HTTP_REDIRECT
    location = parse_qs(urlparse(resp.headers["location"]).query)
    assert location["state"] == ["flow-state"]
    return location["code"][0]


async def _exchange(client: AsyncClient, code: str) -> dict:
    resp = await client.post(
        "/oauth/token",
        data={
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": REDIRECT_URI,
            "client_id": CLIENT_ID,
            "code_verifier": VERIFIER,
        },
    )
    assert resp.status_code == HTTP_OK
    return resp.json()


async def _initialize(client: AsyncClient, access_token: str) -> str:
    resp = await client.post(
        "/mcp",
        json=_rpc("initialize", 1, protocolVersion="2025-11-25", capabilities={}),
        headers={**MCP_HEADERS, "Authorization": f"Bearer {access_token}"},
    )
    assert resp.status_code == HTTP_OK
    assert resp.json()["result"]["serverInfo"]["name"] == "happyfox-mcp"
    return resp.headers["mcp-session-id"]


async def test_full_mcp_flow(client: AsyncClient, upstream: FakeUpstream) -> None:
    code = await _authorize(client, "happyfox:read happyfox:write")
    tokens = await _exchange(client, code)
    assert tokens["token_type"] == "Bearer"
    assert tokens["refresh_token"]

    session = await _initialize(client, tokens["access_token"])
    headers = {
        **MCP_HEADERS,
        "Authorization": f"Bearer {tokens['access_token']}",
        "MCP-Session-Id": session,
    }

    # tools/list is filtered by the granted scopes
    listed = await client.post("/mcp", json=_rpc("tools/list", 2), headers=headers)
    names = {tool["name"] for tool in listed.json()["result"]["tools"]}
    assert "happyfox_get_ticket" in names
    assert "happyfox_create_ticket" in names
    assert "happyfox_delete_ticket" not in names

    called = await client.post(
        "/mcp",
        json=_rpc("tools/call", 3, name="happyfox_get_ticket", arguments={"ticket_id": "7"}),
        headers=headers,
    )
    content = called.json()["result"]["content"][0]
    assert json.loads(content["text"])["subject"] == "Printer on fire"
    ticket_call = upstream.requests[-1]
    assert ticket_call.headers["authorization"].startswith("Basic ")

    read = await client.post(
        "/mcp",
        json=_rpc("resources/read", 4, uri="happyfox://categories"),
        headers=headers,
    )
    assert json.loads(read.json()["result"]["contents"][0]["text"]) == [
        {"id": 1, "name": "Support"}
    ]

    no_session = {k: v for k, v in headers.items() if k != "MCP-Session-Id"}
    resp = await client.post("/mcp", json=_rpc("ping", 5), headers=no_session)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32000


async def test_refreshed_token_reaches_same_grant(client: AsyncClient) -> None:
    code = await _authorize(client, "happyfox:read")
    tokens = await _exchange(client, code)

    resp = await client.post(
        "/oauth/token",
        data={
            "grant_type": "refresh_token",
            "refresh_token": tokens["refresh_token"],
            "client_id": CLIENT_ID,
        },
    )
    assert resp.status_code == HTTP_OK
    refreshed = resp.json()
    assert refreshed["access_token"] != tokens["access_token"]

    session = await _initialize(client, refreshed["access_token"])
    resp = await client.post(
        "/mcp",
        json=_rpc("tools/call", 2, name="happyfox_create_ticket", arguments={}),
        headers={
            **MCP_HEADERS,
            "Authorization": f"Bearer {refreshed['access_token']}",
            "MCP-Session-Id": session,
        },
    )
    error = resp.json()["error"]
    assert error["code"] == -32004
    assert error["data"] == {"granted": ["happyfox:read"]}

    stale = await client.post(
        "/mcp",
        json=_rpc("initialize", 3, protocolVersion="2025-11-25", capabilities={}),
        headers={**MCP_HEADERS, "Authorization": f"Bearer {tokens['access_token']}"},
    )
    assert stale.status_code == 401
