"""Streamable HTTP endpoint for MCP JSON-RPC traffic."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from hfmcp.core.deps import Codec, DbSession, Dispatcher, SettingsDep, Store
from hfmcp.core.settings import MCP_PROTOCOL_VERSION
from hfmcp.crypto.session_token import SessionTokenCodec
from hfmcp.mcp.context import AuthenticationError, resolve_context
from hfmcp.mcp.cors import OriginPolicy, forbidden_origin
from hfmcp.mcp.dispatcher import McpMethod
from hfmcp.mcp.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    PARSE_ERROR,
    SESSION_INVALID,
    SESSION_REQUIRED,
    JsonRpcError,
    RequestId,
    error_body,
    error_response,
    is_notification,
    request_id_of,
    result_body,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])

PROTOCOL_VERSION_HEADER = "MCP-Protocol-Version"
SESSION_HEADER = "MCP-Session-Id"
ALLOW = "POST, OPTIONS, DELETE"
PROTECTED_RESOURCE_PATH = "/.well-known/oauth-protected-resource"

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_SERVER_ERROR = 500


def _validate_envelope(
    raw: bytes, cors: dict[str, str]
) -> tuple[dict[str, Any] | None, Response | None]:
    """Parse a single JSON-RPC object. Returns (body, None) or (None, error)."""
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None, error_response(
            None, PARSE_ERROR, "Parse error: Invalid JSON", HTTP_BAD_REQUEST, cors
        )

    if isinstance(body, list):
        return None, error_response(
            None,
            INVALID_REQUEST,
            "Invalid Request: Batch requests not supported. "
            "Send single messages per request.",
            HTTP_BAD_REQUEST,
            cors,
        )
    if not isinstance(body, dict) or body.get("jsonrpc") != "2.0":
        return None, error_response(
            request_id_of(body),
            INVALID_REQUEST,
            "Invalid Request: Missing or invalid jsonrpc field",
            HTTP_BAD_REQUEST,
            cors,
        )
    method = body.get("method")
    if not isinstance(method, str) or not method:
        return None, error_response(
            request_id_of(body),
            INVALID_REQUEST,
            "Invalid Request: Missing or invalid method field",
            HTTP_BAD_REQUEST,
            cors,
        )
    return body, None


def _validate_transport_headers(
    request: Request, request_id: RequestId, cors: dict[str, str]
) -> Response | None:
    """Protocol version, Accept and Content-Type checks for non-initialize calls."""
    version = request.headers.get(PROTOCOL_VERSION_HEADER)
    if not version:
        return error_response(
            request_id,
            INVALID_REQUEST,
            f"Invalid Request: {PROTOCOL_VERSION_HEADER} header required",
            HTTP_BAD_REQUEST,
            cors,
        )
    if version != MCP_PROTOCOL_VERSION:
        return error_response(
            request_id,
            INVALID_PARAMS,
            f"Unsupported protocol version: {version}. "
            f"This server only supports {MCP_PROTOCOL_VERSION}.",
            HTTP_BAD_REQUEST,
            cors,
        )

    accept = request.headers.get("accept", "")
    any_type = "*/*" in accept
    if not (any_type or ("application/json" in accept and "text/event-stream" in accept)):
        return error_response(
            request_id,
            INVALID_REQUEST,
            "Invalid Request: Accept header must include both "
            "application/json and text/event-stream",
            HTTP_BAD_REQUEST,
            cors,
        )

    if "application/json" not in request.headers.get("content-type", ""):
        return error_response(
            request_id,
            INVALID_REQUEST,
            "Invalid Request: Content-Type header must be application/json",
            HTTP_BAD_REQUEST,
            cors,
        )
    return None


def _validate_session(
    request: Request,
    codec: SessionTokenCodec,
    request_id: RequestId,
    cors: dict[str, str],
) -> Response | None:
    token = request.headers.get(SESSION_HEADER)
    if not token:
        return error_response(
            request_id,
            SESSION_REQUIRED,
            f"Bad Request: {SESSION_HEADER} header required. "
            "Call initialize first to obtain a session.",
            HTTP_BAD_REQUEST,
            cors,
        )

    verification = codec.verify(token)
    if verification.valid:
        return None
    if verification.reason == "expired":
        message, status = "Session expired. Please re-initialize.", HTTP_NOT_FOUND
    elif verification.reason == "invalid":
        message, status = "Invalid session. Please re-initialize.", HTTP_NOT_FOUND
    else:
        message, status = "Malformed session token.", HTTP_BAD_REQUEST
    return error_response(request_id, SESSION_INVALID, message, status, cors)


def _www_authenticate(request: Request, resource_identifier: str) -> str:
    issuer = (resource_identifier or f"{request.url.scheme}://{request.url.netloc}").rstrip("/")
    return f'Bearer resource_metadata="{issuer}{PROTECTED_RESOURCE_PATH}"'


@router.api_route(
    "/mcp",
    methods=["GET", "POST", "DELETE", "OPTIONS", "PUT", "PATCH"],
    response_model=None,
)
async def mcp_endpoint(
    request: Request,
    settings: SettingsDep,
    codec: Codec,
    db: DbSession,
    store: Store,
    dispatcher: Dispatcher,
) -> Response:
    """Single JSON-RPC message per POST; GET streaming is not offered."""
    reason = settings.misconfiguration()
    if reason is not None:
        logger.error("Refusing MCP request: %s", reason)
        return error_response(
            None, INTERNAL_ERROR, "Internal error: Server misconfigured", HTTP_SERVER_ERROR
        )

    policy = OriginPolicy(settings.get_allowed_origin_list())
    origin = request.headers.get("origin")
    if not policy.is_valid(origin):
        logger.warning("Rejected request from disallowed origin %s", origin)
        return forbidden_origin()
    cors = policy.headers(origin)

    if request.method == "OPTIONS":
        return policy.preflight(origin)
    if request.method == "GET":
        return PlainTextResponse(
            "SSE streaming not supported",
            status_code=HTTP_METHOD_NOT_ALLOWED,
            headers={**cors, "Allow": ALLOW},
        )
    if request.method == "DELETE":
        return Response(status_code=202, headers=cors)
    if request.method != "POST":
        return PlainTextResponse(
            "Method not allowed",
            status_code=HTTP_METHOD_NOT_ALLOWED,
            headers={**cors, "Allow": ALLOW},
        )

    body, error = _validate_envelope(await request.body(), cors)
    if error is not None:
        return error
    assert body is not None

    request_id = request_id_of(body)
    is_initialize = body["method"] == McpMethod.INITIALIZE
    if not is_initialize:
        error = _validate_transport_headers(request, request_id, cors)
        if error is None:
            error = _validate_session(request, codec, request_id, cors)
        if error is not None:
            return error

    if is_notification(body):
        return Response(status_code=202, headers=cors)

    try:
        context = await resolve_context(db, store, request.headers.get("authorization"))
    except AuthenticationError as exc:
        headers = {
            **cors,
            "WWW-Authenticate": _www_authenticate(request, settings.resource_identifier),
        }
        return JSONResponse(
            error_body(request_id, exc), status_code=exc.status_code, headers=headers
        )

    try:
        result = await dispatcher.dispatch(body["method"], body.get("params"), context)
    except JsonRpcError as exc:
        return JSONResponse(error_body(request_id, exc), headers=cors)

    headers = dict(cors)
    if is_initialize:
        headers[SESSION_HEADER] = codec.issue(MCP_PROTOCOL_VERSION, result["capabilities"].keys())
        logger.info("Session issued for staff %s", context.staff_id)
    return JSONResponse(result_body(request_id, result), headers=headers)
