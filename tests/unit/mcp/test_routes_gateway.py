"""Tests for the /mcp endpoint transport checks."""

import pytest
from httpx import AsyncClient

from hfmcp.crypto.session_token import SessionTokenCodec
from tests.support import MCP_HEADERS, SESSION_SECRET, GrantFactory

INIT = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-11-25", "capabilities": {}},
}


def _session() -> str:
    return SessionTokenCodec(SESSION_SECRET).issue("2025-11-25", ["resources", "tools"])


def _headers(token: str, session: str | None = None, **extra: str) -> dict[str, str]:
    headers = {**MCP_HEADERS, "Authorization": f"Bearer {token}", **extra}
    if session is not None:
        headers["MCP-Session-Id"] = session
    return headers


def _call(method: str, request_id: int | None = 2, **params) -> dict:
    body: dict = {"jsonrpc": "2.0", "method": method, "params": params}
    if request_id is not None:
        body["id"] = request_id
    return body


class TestMethods:
    """Tests for non-POST methods and origin checks."""

    async def test_get_not_supported(self, client: AsyncClient) -> None:
        resp = await client.get("/mcp")
        assert resp.status_code == 405
        assert resp.headers["allow"] == "POST, OPTIONS, DELETE"

    async def test_delete_acknowledged(self, client: AsyncClient) -> None:
        resp = await client.delete("/mcp")
        assert resp.status_code == 202

    async def test_put_rejected(self, client: AsyncClient) -> None:
        resp = await client.put("/mcp", json={})
        assert resp.status_code == 405

    async def test_preflight(self, client: AsyncClient) -> None:
        resp = await client.options("/mcp", headers={"Origin": "http://localhost:5173"})
        assert resp.status_code == 204
        assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"

    async def test_disallowed_origin(self, client: AsyncClient) -> None:
        resp = await client.post("/mcp", json=INIT, headers={"Origin": "https://evil.com"})
        assert resp.status_code == 403
        assert resp.text == "Forbidden: Invalid Origin"

    async def test_misconfigured(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MCP_CREDENTIAL_ENCRYPTION_KEY", "dG9vLXNob3J0")
        resp = await client.post("/mcp", json=INIT)
        assert resp.status_code == 500
        assert resp.json()["error"] == {
            "code": -32603,
            "message": "Internal error: Server misconfigured",
        }


class TestEnvelope:
    """Tests for JSON-RPC envelope validation."""

    async def test_invalid_json(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/mcp", content=b"{nope", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32700

    @pytest.mark.parametrize("batch", [[], [INIT], [INIT, INIT]])
    async def test_batch_rejected(self, client: AsyncClient, batch: list) -> None:
        resp = await client.post("/mcp", json=batch)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32600

    async def test_wrong_jsonrpc_version(self, client: AsyncClient) -> None:
        resp = await client.post("/mcp", json={**INIT, "jsonrpc": "1.0"})
        assert resp.status_code == 400
        assert resp.json() == {
            "jsonrpc": "2.0",
            "error": {
                "code": -32600,
                "message": "Invalid Request: Missing or invalid jsonrpc field",
            },
            "id": 1,
        }

    async def test_missing_method(self, client: AsyncClient) -> None:
        resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 3, "method": ""})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32600


class TestTransportHeaders:
    """Tests for header checks on non-initialize requests."""

    async def test_missing_protocol_version(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        headers = _headers(token, _session())
        del headers["MCP-Protocol-Version"]
        resp = await client.post("/mcp", json=_call("ping"), headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32600

    async def test_unsupported_protocol_version(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        headers = _headers(token, _session(), **{"MCP-Protocol-Version": "2024-11-05"})
        resp = await client.post("/mcp", json=_call("ping"), headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32602

    async def test_accept_must_offer_both_types(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        headers = _headers(token, _session(), Accept="application/json")
        resp = await client.post("/mcp", json=_call("ping"), headers=headers)
        assert resp.status_code == 400
        assert "Accept" in resp.json()["error"]["message"]

    async def test_session_required(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        resp = await client.post("/mcp", json=_call("ping"), headers=_headers(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32000

    async def test_malformed_session(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        resp = await client.post(
            "/mcp", json=_call("ping"), headers=_headers(token, "not-a-token")
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32001

    async def test_forged_session(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        forged = SessionTokenCodec("f" * 40).issue("2025-11-25", ["tools"])
        resp = await client.post(
            "/mcp", json=_call("ping"), headers=_headers(token, forged)
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == -32001

    async def test_expired_session(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        expired = SessionTokenCodec(SESSION_SECRET, clock=lambda: 1_000_000).issue(
            "2025-11-25", ["tools"]
        )
        resp = await client.post(
            "/mcp", json=_call("ping"), headers=_headers(token, expired)
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Session expired. Please re-initialize."


class TestAuthentication:
    """Tests for bearer token and credential resolution."""

    async def test_missing_bearer(self, client: AsyncClient) -> None:
        resp = await client.post("/mcp", json=INIT, headers=MCP_HEADERS)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == -32002
        assert resp.headers["www-authenticate"] == (
            'Bearer resource_metadata="http://test/.well-known/oauth-protected-resource"'
        )

    async def test_unknown_bearer(self, client: AsyncClient) -> None:
        resp = await client.post("/mcp", json=INIT, headers=_headers("bogus"))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == -32002

    async def test_credentials_gone(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant(with_credentials=False)
        resp = await client.post("/mcp", json=INIT, headers=_headers(token))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == -32003


class TestDispatch:
    """Tests for requests that reach the dispatcher."""

    async def test_initialize_issues_session(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        resp = await client.post("/mcp", json=INIT, headers=_headers(token))
        assert resp.status_code == 200
        assert resp.json()["result"]["protocolVersion"] == "2025-11-25"
        session = resp.headers["mcp-session-id"]
        verified = SessionTokenCodec(SESSION_SECRET).verify(session)
        assert verified.valid
        assert verified.payload is not None
        assert verified.payload.caps == "resources,tools"

    async def test_failed_initialize_has_no_session(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        body = {**INIT, "params": {"protocolVersion": "2024-11-05"}}
        resp = await client.post("/mcp", json=body, headers=_headers(token))
        assert resp.status_code == 200
        assert resp.json()["error"]["code"] == -32602
        assert "mcp-session-id" not in resp.headers

    async def test_unknown_method(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        resp = await client.post(
            "/mcp", json=_call("prompts/list"), headers=_headers(token, _session())
        )
        assert resp.status_code == 200
        assert resp.json()["error"]["code"] == -32601

    async def test_insufficient_scope(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant(scopes=["happyfox:read"])
        resp = await client.post(
            "/mcp",
            json=_call("tools/call", name="happyfox_delete_ticket", arguments={"ticket_id": "1"}),
            headers=_headers(token, _session()),
        )
        assert resp.status_code == 200
        assert resp.json()["error"]["code"] == -32004

    async def test_notification_is_accepted_without_body(
        self, client: AsyncClient
    ) -> None:
        resp = await client.post(
            "/mcp",
            json=_call("notifications/initialized", request_id=None),
            headers={**MCP_HEADERS, "MCP-Session-Id": _session()},
        )
        assert resp.status_code == 202
        assert resp.content == b""

    async def test_notification_still_needs_session(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/mcp",
            json=_call("notifications/initialized", request_id=None),
            headers=MCP_HEADERS,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == -32000

    async def test_cors_headers_on_response(
        self, client: AsyncClient, make_grant: GrantFactory
    ) -> None:
        token = await make_grant()
        resp = await client.post(
            "/mcp",
            json=INIT,
            headers=_headers(token, Origin="http://localhost:3000"),
        )
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert "MCP-Session-Id" in resp.headers["access-control-expose-headers"]
