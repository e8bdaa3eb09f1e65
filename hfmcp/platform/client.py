"""HTTP client for the HappyFox REST API with retry and backoff."""

import asyncio
import base64
import logging
import random
from typing import Any

import httpx

from hfmcp.core.settings import PLATFORM_MAX_RETRIES_DEFAULT, PLATFORM_TIMEOUT_DEFAULT

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 60.0
HTTP_TOO_MANY_REQUESTS = 429


class PlatformAPIError(Exception):
    """Non-success response or transport failure from HappyFox."""

    def __init__(self, message: str, status_code: int, code: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def base_url(account_name: str, region: str) -> str:
    domain = "happyfox.net" if region == "eu" else "happyfox.com"
    return f"https://{account_name}.{domain}/api/1.1/json"


def _error_message(response: httpx.Response) -> str:
    fallback = f"HappyFox API error: {response.status_code} {response.reason_phrase}"
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or fallback)
    return fallback


class HappyFoxClient:
    """Authenticated calls against one HappyFox account."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: str,
        auth_code: str,
        account_name: str,
        region: str = "us",
        max_retries: int = PLATFORM_MAX_RETRIES_DEFAULT,
        timeout: float = PLATFORM_TIMEOUT_DEFAULT,
        base_delay: float = BASE_DELAY_SECONDS,
    ) -> None:
        self._http = http_client
        self._base_url = base_url(account_name, region)
        token = base64.b64encode(f"{api_key}:{auth_code}".encode()).decode()
        self._auth_header = f"Basic {token}"
        self._max_retries = max_retries
        self._timeout = timeout
        self._base_delay = base_delay

    def _backoff(self, attempt: int, jitter: bool) -> float:
        delay = self._base_delay * (2**attempt)
        if jitter:
            delay += random.uniform(0, self._base_delay)
        return min(delay, MAX_DELAY_SECONDS)

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request, retrying 429, 5xx and network errors."""
        url = f"{self._base_url}{path}"
        headers = {"Authorization": self._auth_header, "Content-Type": "application/json"}

        for attempt in range(self._max_retries + 1):
            retries_left = attempt < self._max_retries
            try:
                response = await self._http.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=body,
                    timeout=self._timeout,
                )
            except httpx.TransportError as exc:
                if not retries_left:
                    raise PlatformAPIError(
                        f"Request failed: {exc}", 0, "NETWORK_ERROR"
                    ) from exc
                delay = self._backoff(attempt, jitter=False)
                logger.warning(
                    "Network error calling HappyFox, retrying in %.1fs (attempt %d/%d)",
                    delay, attempt + 1, self._max_retries,
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code == HTTP_TOO_MANY_REQUESTS or response.is_server_error:
                if not retries_left:
                    if response.status_code == HTTP_TOO_MANY_REQUESTS:
                        raise PlatformAPIError(
                            "Rate limit exceeded after maximum retries",
                            HTTP_TOO_MANY_REQUESTS,
                            "RATE_LIMIT_EXCEEDED",
                        )
                    raise PlatformAPIError(
                        _error_message(response), response.status_code, "API_ERROR"
                    )
                delay = self._backoff(attempt, jitter=True)
                logger.warning(
                    "HappyFox returned %d, retrying in %.1fs (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, self._max_retries,
                )
                await asyncio.sleep(delay)
                continue

            if not response.is_success:
                raise PlatformAPIError(
                    _error_message(response), response.status_code, "API_ERROR"
                )
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                return response.text

        raise AssertionError("unreachable")

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, body: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("POST", path, body=body, params=params)

    async def put(self, path: str, body: Any = None) -> Any:
        return await self.request("PUT", path, body=body)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params=params)
