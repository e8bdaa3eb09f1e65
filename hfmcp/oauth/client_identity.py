"""Client ID Metadata Document (CIMD) fetching and validation.

The OAuth ``client_id`` is an HTTPS URL serving a JSON document that
describes the client. The document must name itself.
"""

import logging
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from hfmcp.core.cache import TTLCache
from hfmcp.core.settings import CLIENT_METADATA_TIMEOUT_DEFAULT
from hfmcp.oauth.types import ClientIdentityDocument

logger = logging.getLogger(__name__)


class ClientIdentityError(Exception):
    """Client metadata could not be resolved or failed validation."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


def _is_url(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def _is_https_url(value: str) -> bool:
    if not value.startswith("https://"):
        return False
    try:
        return bool(urlparse(value).netloc)
    except ValueError:
        return False


def validate_client_metadata(raw: object, identity_url: str) -> ClientIdentityDocument:
    """Validate a fetched document against the URL it came from."""
    if not isinstance(raw, dict):
        raise ClientIdentityError("Client metadata is not a JSON object", "INVALID_METADATA")

    if raw.get("client_id") != identity_url:
        raise ClientIdentityError(
            f'Client ID mismatch: document contains "{raw.get("client_id")}" '
            f'but was fetched from "{identity_url}"',
            "CLIENT_ID_MISMATCH",
        )

    name = raw.get("client_name")
    if not isinstance(name, str) or not name:
        raise ClientIdentityError(
            "Missing or invalid client_name in metadata", "INVALID_METADATA"
        )

    redirect_uris = raw.get("redirect_uris")
    if not isinstance(redirect_uris, list) or not redirect_uris:
        raise ClientIdentityError(
            "Missing or empty redirect_uris in metadata", "INVALID_METADATA"
        )
    for uri in redirect_uris:
        if not _is_url(uri):
            raise ClientIdentityError(f"Invalid redirect_uri: {uri}", "INVALID_REDIRECT_URI")

    logo_uri = raw.get("logo_uri")
    if logo_uri and not (isinstance(logo_uri, str) and _is_https_url(logo_uri)):
        raise ClientIdentityError("logo_uri must be an HTTPS URL", "INVALID_LOGO_URI")

    client_uri = raw.get("client_uri")
    if client_uri and not (isinstance(client_uri, str) and _is_https_url(client_uri)):
        raise ClientIdentityError("client_uri must be an HTTPS URL", "INVALID_CLIENT_URI")

    try:
        return ClientIdentityDocument.model_validate(raw)
    except ValidationError as exc:
        raise ClientIdentityError(
            f"Invalid client metadata: {exc.error_count()} field error(s)",
            "INVALID_METADATA",
        ) from exc


def validate_redirect_uri(document: ClientIdentityDocument, redirect_uri: str) -> bool:
    """Check that redirect_uri is one the client published."""
    return redirect_uri in document.redirect_uris


class ClientIdentityResolver:
    """Fetches client metadata documents, caching successes briefly."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: TTLCache[ClientIdentityDocument],
        timeout: float = CLIENT_METADATA_TIMEOUT_DEFAULT,
    ) -> None:
        self._http = http_client
        self._cache = cache
        self._timeout = timeout

    async def resolve(self, identity_url: str) -> ClientIdentityDocument:
        """Return the validated document for identity_url."""
        if not _is_https_url(identity_url):
            raise ClientIdentityError(
                "Invalid client_id: must be an HTTPS URL", "INVALID_CLIENT_ID"
            )

        cached = self._cache.get(identity_url)
        if cached is not None:
            logger.debug("Client metadata cache hit for %s", identity_url)
            return cached

        try:
            response = await self._http.get(
                identity_url,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
                follow_redirects=False,
            )
        except httpx.TimeoutException as exc:
            raise ClientIdentityError("Client metadata fetch timed out", "TIMEOUT") from exc
        except httpx.HTTPError as exc:
            raise ClientIdentityError(
                f"Failed to fetch client metadata: {exc}", "FETCH_FAILED"
            ) from exc

        if not response.is_success:
            raise ClientIdentityError(
                f"Failed to fetch client metadata: {response.status_code} "
                f"{response.reason_phrase}",
                "FETCH_FAILED",
            )

        try:
            raw = response.json()
        except ValueError as exc:
            raise ClientIdentityError(
                "Client metadata is not valid JSON", "FETCH_FAILED"
            ) from exc

        document = validate_client_metadata(raw, identity_url)
        self._cache.set(identity_url, document)
        return document
