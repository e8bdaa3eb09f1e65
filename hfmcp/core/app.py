"""FastAPI application factory for the HappyFox MCP gateway."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from hfmcp.api.router_staff import router as staff_router
from hfmcp.core.cache import TTLCache
from hfmcp.core.deps import cipher_for_key
from hfmcp.core.settings import GatewaySettings
from hfmcp.mcp.routes_gateway import router as gateway_router
from hfmcp.oauth.routes_authorize import router as authorize_router
from hfmcp.oauth.routes_discovery import router as discovery_router
from hfmcp.oauth.routes_token import router as token_router
from hfmcp.oauth.types import ClientIdentityDocument
from hfmcp.platform.cache import ReferenceCache
from hfmcp.platform.resources import ResourceRegistry
from hfmcp.platform.tools import ToolRegistry

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = GatewaySettings()
    reason = settings.misconfiguration()
    if reason is None:
        cipher_for_key(settings.credential_encryption_key).validate_key()
    else:
        # Requests still get a generic 500; the reason is only logged.
        logger.error("Gateway secrets are unusable: %s", reason)

    http_client = httpx.AsyncClient(timeout=settings.platform_timeout)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await http_client.aclose()

    app = FastAPI(
        title="HappyFox MCP Gateway",
        version="2.0.0",
        lifespan=lifespan,
    )

    # Process-wide collaborators; dependencies read them from app.state.
    app.state.http_client = http_client
    app.state.client_identity_cache = TTLCache[ClientIdentityDocument](
        settings.client_metadata_cache_ttl
    )
    app.state.tool_registry = ToolRegistry()
    app.state.resource_registry = ResourceRegistry(
        ReferenceCache(TTLCache(settings.reference_cache_ttl))
    )

    app.include_router(gateway_router)
    app.include_router(discovery_router)
    app.include_router(authorize_router)
    app.include_router(token_router)
    app.include_router(staff_router)

    return app
