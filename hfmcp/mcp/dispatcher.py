"""Routes JSON-RPC methods to the tool and resource registries."""

import json
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import httpx

from hfmcp.core.settings import MCP_PROTOCOL_VERSION, GatewaySettings
from hfmcp.mcp.context import AuthenticatedContext
from hfmcp.mcp.jsonrpc import (
    INSUFFICIENT_SCOPE,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JsonRpcError,
)
from hfmcp.oauth.scopes import filter_by_scope, inject_identity, permits, permits_resources
from hfmcp.platform.client import HappyFoxClient, PlatformAPIError
from hfmcp.platform.resources import ResourceNotFoundError, ResourceRegistry
from hfmcp.platform.tools import ToolExecutionError, ToolNotFoundError, ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "happyfox-mcp"
SERVER_VERSION = "2.0.0"
PAGE_SIZE = 50

Params = dict[str, Any]


class McpMethod(StrEnum):
    INITIALIZE = "initialize"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    COMPLETION_COMPLETE = "completion/complete"


def parse_method(name: str) -> McpMethod | None:
    try:
        return McpMethod(name)
    except ValueError:
        return None


def paginate(items: list[Any], cursor: Any) -> tuple[list[Any], str | None]:
    """Slice one page starting at the numeric cursor; return the next cursor."""
    try:
        start = int(cursor) if cursor is not None else 0
    except (TypeError, ValueError) as exc:
        raise JsonRpcError(INVALID_PARAMS, f"Invalid cursor: {cursor}") from exc
    if start < 0:
        raise JsonRpcError(INVALID_PARAMS, f"Invalid cursor: {cursor}")
    end = min(start + PAGE_SIZE, len(items))
    next_cursor = str(end) if end < len(items) else None
    return items[start:end], next_cursor


def _text_content(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


class McpDispatcher:
    """Executes one JSON-RPC request for an authenticated caller.

    Scope policy is applied here, before the registries see a call.
    """

    def __init__(
        self,
        tools: ToolRegistry,
        resources: ResourceRegistry,
        http_client: httpx.AsyncClient,
        settings: GatewaySettings,
    ) -> None:
        self._tools = tools
        self._resources = resources
        self._http = http_client
        self._settings = settings
        handlers: dict[McpMethod, Callable[[Params, AuthenticatedContext], Awaitable[Any]]] = {
            McpMethod.INITIALIZE: self._initialize,
            McpMethod.PING: self._ping,
            McpMethod.TOOLS_LIST: self._tools_list,
            McpMethod.TOOLS_CALL: self._tools_call,
            McpMethod.RESOURCES_LIST: self._resources_list,
            McpMethod.RESOURCES_READ: self._resources_read,
            McpMethod.COMPLETION_COMPLETE: self._completion,
        }
        missing = set(McpMethod) - handlers.keys()
        if missing:
            raise RuntimeError(f"No handler for {sorted(missing)}")
        self._handlers = handlers

    async def dispatch(
        self, method: str, params: Any, context: AuthenticatedContext
    ) -> Any:
        """Return the result member, or raise JsonRpcError."""
        parsed = parse_method(method)
        if parsed is None:
            raise JsonRpcError(METHOD_NOT_FOUND, f"Method not found: {method}")
        if params is not None and not isinstance(params, dict):
            raise JsonRpcError(INVALID_PARAMS, "params must be an object")
        return await self._handlers[parsed](params or {}, context)

    def _client_for(self, context: AuthenticatedContext) -> HappyFoxClient:
        creds = context.credentials
        return HappyFoxClient(
            self._http,
            api_key=creds.api_key,
            auth_code=creds.auth_code,
            account_name=creds.account_name,
            region=creds.region,
            max_retries=self._settings.platform_max_retries,
            timeout=self._settings.platform_timeout,
        )

    async def _initialize(self, params: Params, context: AuthenticatedContext) -> Any:
        requested = params.get("protocolVersion")
        if requested != MCP_PROTOCOL_VERSION:
            raise JsonRpcError(
                INVALID_PARAMS,
                f"Unsupported protocol version: {requested or 'none'}. "
                f"This server only supports {MCP_PROTOCOL_VERSION}",
                {"supported": [MCP_PROTOCOL_VERSION], "requested": requested},
            )
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "resources": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    async def _ping(self, params: Params, context: AuthenticatedContext) -> Any:
        return {}

    async def _tools_list(self, params: Params, context: AuthenticatedContext) -> Any:
        visible = filter_by_scope(self._tools.list_tools(), context.scopes)
        page, next_cursor = paginate(visible, params.get("cursor"))
        result: dict[str, Any] = {
            "tools": [tool.model_dump(by_alias=True) for tool in page]
        }
        if next_cursor is not None:
            result["nextCursor"] = next_cursor
        return result

    async def _tools_call(self, params: Params, context: AuthenticatedContext) -> Any:
        name = params.get("name")
        if not name or not isinstance(name, str):
            raise JsonRpcError(INVALID_PARAMS, "Missing required parameter: name")
        if not self._tools.has_tool(name):
            raise JsonRpcError(INVALID_PARAMS, str(ToolNotFoundError(name)))
        if not permits(context.scopes, name):
            logger.warning("Staff %s lacks scope for %s", context.staff_id, name)
            raise JsonRpcError(
                INSUFFICIENT_SCOPE,
                f"Insufficient scope for tool: {name}",
                {"granted": list(context.scopes)},
            )

        args = params.get("arguments") or {}
        if not isinstance(args, dict):
            raise JsonRpcError(INVALID_PARAMS, "arguments must be an object")
        args = inject_identity(name, args, context.staff_id)

        try:
            result = await self._tools.call(name, args, self._client_for(context))
        except ToolNotFoundError as exc:
            raise JsonRpcError(INVALID_PARAMS, str(exc)) from exc
        except ToolExecutionError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            error_result: dict[str, Any] = {
                "content": [_text_content(f"Error: {exc}")],
                "isError": True,
            }
            meta = {
                key: value
                for key, value in (
                    ("statusCode", exc.status_code),
                    ("errorCode", exc.error_code),
                )
                if value is not None
            }
            if meta:
                error_result["_meta"] = meta
            return error_result

        text = result if isinstance(result, str) else json.dumps(result, indent=2)
        return {"content": [_text_content(text)]}

    async def _resources_list(self, params: Params, context: AuthenticatedContext) -> Any:
        page, next_cursor = paginate(self._resources.list_resources(), params.get("cursor"))
        result: dict[str, Any] = {
            "resources": [resource.model_dump(by_alias=True) for resource in page]
        }
        if next_cursor is not None:
            result["nextCursor"] = next_cursor
        return result

    async def _resources_read(self, params: Params, context: AuthenticatedContext) -> Any:
        if not permits_resources(context.scopes):
            raise JsonRpcError(INSUFFICIENT_SCOPE, "Insufficient scope to read resources")
        uri = params.get("uri")
        if not uri or not isinstance(uri, str):
            raise JsonRpcError(INVALID_PARAMS, "Missing required parameter: uri")

        creds = context.credentials
        try:
            content = await self._resources.read(
                uri,
                self._client_for(context),
                account_name=creds.account_name,
                region=creds.region,
            )
        except ResourceNotFoundError as exc:
            raise JsonRpcError(INVALID_PARAMS, str(exc)) from exc
        except PlatformAPIError as exc:
            raise JsonRpcError(
                INTERNAL_ERROR,
                f"Failed to read resource: {exc}",
                {"statusCode": exc.status_code, "errorCode": exc.code},
            ) from exc
        return {"contents": [content.model_dump(by_alias=True)]}

    async def _completion(self, params: Params, context: AuthenticatedContext) -> Any:
        return {"completion": {"values": [], "total": 0, "hasMore": False}}
