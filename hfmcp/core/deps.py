"""FastAPI dependency providers shared by the routers."""

from functools import lru_cache
from typing import Annotated

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.core.cache import TTLCache
from hfmcp.core.settings import GatewaySettings
from hfmcp.crypto.cipher import CredentialCipher
from hfmcp.crypto.session_token import SessionTokenCodec
from hfmcp.db.engine import get_session
from hfmcp.mcp.dispatcher import McpDispatcher
from hfmcp.oauth.client_identity import ClientIdentityResolver
from hfmcp.oauth.credential_store import CredentialStore
from hfmcp.oauth.types import ClientIdentityDocument
from hfmcp.platform.resources import ResourceRegistry
from hfmcp.platform.tools import ToolRegistry


def load_settings() -> GatewaySettings:
    return GatewaySettings()


@lru_cache(maxsize=4)
def cipher_for_key(key_b64: str) -> CredentialCipher:
    """One cipher (and one key import) per configured key."""
    return CredentialCipher(key_b64)


@lru_cache(maxsize=4)
def codec_for_secret(secret: str) -> SessionTokenCodec:
    """One codec (and one HMAC key import) per configured secret."""
    return SessionTokenCodec(secret)


SettingsDep = Annotated[GatewaySettings, Depends(load_settings)]
DbSession = Annotated[AsyncSession, Depends(get_session)]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client created in the app lifespan."""
    return request.app.state.http_client


def get_identity_cache(request: Request) -> TTLCache[ClientIdentityDocument]:
    return request.app.state.client_identity_cache


HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]


def get_cipher(settings: SettingsDep) -> CredentialCipher:
    return cipher_for_key(settings.credential_encryption_key)


def get_session_codec(settings: SettingsDep) -> SessionTokenCodec:
    return codec_for_secret(settings.session_secret)


def get_credential_store(
    db: DbSession,
    settings: SettingsDep,
    cipher: Annotated[CredentialCipher, Depends(get_cipher)],
) -> CredentialStore:
    return CredentialStore(db, cipher, credential_ttl=settings.credential_ttl)


def get_identity_resolver(
    http_client: HttpClient,
    settings: SettingsDep,
    cache: Annotated[TTLCache[ClientIdentityDocument], Depends(get_identity_cache)],
) -> ClientIdentityResolver:
    return ClientIdentityResolver(
        http_client, cache, timeout=settings.client_metadata_timeout
    )


Store = Annotated[CredentialStore, Depends(get_credential_store)]
Resolver = Annotated[ClientIdentityResolver, Depends(get_identity_resolver)]
Codec = Annotated[SessionTokenCodec, Depends(get_session_codec)]


def get_tool_registry(request: Request) -> ToolRegistry:
    return request.app.state.tool_registry


def get_resource_registry(request: Request) -> ResourceRegistry:
    return request.app.state.resource_registry


def get_dispatcher(
    http_client: HttpClient,
    settings: SettingsDep,
    tools: Annotated[ToolRegistry, Depends(get_tool_registry)],
    resources: Annotated[ResourceRegistry, Depends(get_resource_registry)],
) -> McpDispatcher:
    return McpDispatcher(tools, resources, http_client, settings)


Dispatcher = Annotated[McpDispatcher, Depends(get_dispatcher)]
