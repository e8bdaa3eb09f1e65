"""JSON-RPC 2.0 envelope helpers and the gateway's error codes."""

from typing import Any

from starlette.responses import JSONResponse

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_REQUIRED = -32000
SESSION_INVALID = -32001
AUTHENTICATION_REQUIRED = -32002
CREDENTIALS_NOT_FOUND = -32003
INSUFFICIENT_SCOPE = -32004

RequestId = str | int | None


class JsonRpcError(Exception):
    """Error that becomes the `error` member of a JSON-RPC response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def result_body(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_body(request_id: RequestId, error: JsonRpcError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "error": error.to_dict(), "id": request_id}


def error_response(
    request_id: RequestId,
    code: int,
    message: str,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Transport-level JSON-RPC error with a non-200 HTTP status."""
    return JSONResponse(
        error_body(request_id, JsonRpcError(code, message)),
        status_code=status_code,
        headers=headers,
    )


def request_id_of(body: Any) -> RequestId:
    """The `id` member of a parsed body, or None when there is none."""
    if isinstance(body, dict):
        return body.get("id")
    return None


def is_notification(body: dict[str, Any]) -> bool:
    """Notifications carry no `id` member at all; `"id": null` is a request."""
    return "id" not in body
