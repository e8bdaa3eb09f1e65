"""Well-known OAuth metadata endpoints."""

from fastapi import APIRouter, Request, Response

from hfmcp.core.deps import SettingsDep
from hfmcp.oauth.discovery import (
    AuthorizationServerMetadata,
    ProtectedResourceMetadata,
    build_authorization_server_metadata,
    build_protected_resource_metadata,
    resolve_issuer,
)

router = APIRouter()

METADATA_CACHE_CONTROL = "public, max-age=3600"


def _request_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(
    request: Request,
    response: Response,
    settings: SettingsDep,
) -> AuthorizationServerMetadata:
    """RFC 8414 Authorization Server Metadata."""
    response.headers["Cache-Control"] = METADATA_CACHE_CONTROL
    issuer = resolve_issuer(settings, _request_origin(request))
    return build_authorization_server_metadata(issuer)


@router.get("/.well-known/oauth-protected-resource")
async def protected_resource_metadata(
    request: Request,
    response: Response,
    settings: SettingsDep,
) -> ProtectedResourceMetadata:
    """RFC 9728 Protected Resource Metadata."""
    response.headers["Cache-Control"] = METADATA_CACHE_CONTROL
    issuer = resolve_issuer(settings, _request_origin(request))
    return build_protected_resource_metadata(issuer)
