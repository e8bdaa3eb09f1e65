"""Origin allow-list and CORS headers for the MCP endpoint."""

import re

from starlette.responses import PlainTextResponse, Response

ALLOWED_METHODS = "GET, POST, DELETE, OPTIONS"
ALLOWED_HEADERS = ", ".join(
    [
        "Content-Type",
        "Accept",
        "Authorization",
        "MCP-Session-Id",
        "MCP-Protocol-Version",
        "Last-Event-ID",
    ]
)
EXPOSED_HEADERS = "MCP-Session-Id, MCP-Protocol-Version"
PREFLIGHT_MAX_AGE = "86400"
WILDCARD_PORT = ":*"

_TRAILING_PORT = re.compile(r":\d+$")


class OriginPolicy:
    """Matches browser Origins against exact or `scheme://host:*` entries."""

    def __init__(self, allowed_origins: list[str]) -> None:
        self._allowed = allowed_origins

    def _matches(self, origin: str) -> bool:
        for allowed in self._allowed:
            if allowed in ("*", origin):
                return True
            if allowed.endswith(WILDCARD_PORT):
                if allowed[: -len(WILDCARD_PORT)] == _TRAILING_PORT.sub("", origin):
                    return True
        return False

    def is_valid(self, origin: str | None) -> bool:
        """Absent Origin means same-origin or a non-browser client."""
        if not origin:
            return True
        return self._matches(origin)

    def headers(self, origin: str | None) -> dict[str, str]:
        headers = {
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Expose-Headers": EXPOSED_HEADERS,
            "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
        }
        if origin and self._matches(origin):
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"
        elif "*" in self._allowed:
            headers["Access-Control-Allow-Origin"] = "*"
        return headers

    def preflight(self, origin: str | None) -> Response:
        if not self.is_valid(origin):
            return forbidden_origin()
        return Response(status_code=204, headers=self.headers(origin))


def forbidden_origin() -> Response:
    return PlainTextResponse("Forbidden: Invalid Origin", status_code=403)
