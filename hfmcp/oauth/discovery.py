"""OAuth authorization-server and protected-resource metadata builders."""

from pydantic import BaseModel

from hfmcp.core.settings import GatewaySettings
from hfmcp.oauth.types import AVAILABLE_SCOPES


class AuthorizationServerMetadata(BaseModel):
    """RFC 8414 /.well-known/oauth-authorization-server response."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    response_types_supported: list[str]
    grant_types_supported: list[str]
    code_challenge_methods_supported: list[str]
    scopes_supported: list[str]
    token_endpoint_auth_methods_supported: list[str]
    client_id_metadata_document_supported: bool = True
    ui_locales_supported: list[str]


class ProtectedResourceMetadata(BaseModel):
    """RFC 9728 /.well-known/oauth-protected-resource response."""

    resource: str
    authorization_servers: list[str]
    scopes_supported: list[str]
    bearer_methods_supported: list[str]


def resolve_issuer(settings: GatewaySettings, request_origin: str) -> str:
    """Configured resource identifier, else scheme://host of the request."""
    return (settings.resource_identifier or request_origin).rstrip("/")


def build_authorization_server_metadata(issuer: str) -> AuthorizationServerMetadata:
    return AuthorizationServerMetadata(
        issuer=issuer,
        authorization_endpoint=f"{issuer}/authorize",
        token_endpoint=f"{issuer}/oauth/token",
        response_types_supported=["code"],
        grant_types_supported=["authorization_code", "refresh_token"],
        code_challenge_methods_supported=["S256"],
        scopes_supported=list(AVAILABLE_SCOPES),
        token_endpoint_auth_methods_supported=["none"],
        ui_locales_supported=["en"],
    )


def build_protected_resource_metadata(issuer: str) -> ProtectedResourceMetadata:
    return ProtectedResourceMetadata(
        resource=issuer,
        authorization_servers=[issuer],
        scopes_supported=list(AVAILABLE_SCOPES),
        bearer_methods_supported=["header"],
    )
