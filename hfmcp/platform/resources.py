"""Read-only HappyFox reference data exposed as MCP resources."""

import json

from pydantic import BaseModel, ConfigDict, Field

from hfmcp.platform.cache import ReferenceCache
from hfmcp.platform.client import HappyFoxClient

RESOURCE_URI_PREFIX = "happyfox://"
JSON_MIME_TYPE = "application/json"


class ResourceNotFoundError(Exception):
    """Unknown resource URI."""

    code = "RESOURCE_NOT_FOUND"

    def __init__(self, uri: str) -> None:
        super().__init__(f"Resource not found: {uri}")
        self.uri = uri


class ResourceDefinition(BaseModel):
    """Resource as advertised by resources/list."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str
    name: str
    description: str
    mime_type: str = Field(default=JSON_MIME_TYPE, alias="mimeType")


class ResourceContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uri: str
    mime_type: str = Field(alias="mimeType")
    text: str


# (resource name, display name, description, API path)
_RESOURCES: list[tuple[str, str, str, str]] = [
    ("categories", "Categories", "List of all ticket categories", "/categories/"),
    ("statuses", "Statuses", "List of all ticket statuses", "/statuses/"),
    (
        "ticket-custom-fields",
        "Ticket Custom Fields",
        "List of custom fields for tickets",
        "/ticket_custom_fields/",
    ),
    (
        "contact-custom-fields",
        "Contact Custom Fields",
        "List of custom fields for contacts",
        "/user_custom_fields/",
    ),
    ("staff", "Staff Members", "List of all staff members", "/staff/"),
    ("contact-groups", "Contact Groups", "List of all contact groups", "/contact_groups/"),
    (
        "asset-types",
        "Asset Types",
        "List of all asset types (cacheable reference data)",
        "/asset_types/",
    ),
]

RESOURCE_NAMES = [name for name, _, _, _ in _RESOURCES]


class ResourceRegistry:
    """Lists reference resources and reads them through the cache."""

    def __init__(self, cache: ReferenceCache) -> None:
        self._cache = cache
        self._definitions = {
            f"{RESOURCE_URI_PREFIX}{name}": ResourceDefinition(
                uri=f"{RESOURCE_URI_PREFIX}{name}", name=title, description=description
            )
            for name, title, description, _ in _RESOURCES
        }
        self._paths = {f"{RESOURCE_URI_PREFIX}{name}": path for name, _, _, path in _RESOURCES}

    def list_resources(self) -> list[ResourceDefinition]:
        return list(self._definitions.values())

    async def read(
        self,
        uri: str,
        client: HappyFoxClient,
        *,
        account_name: str,
        region: str,
    ) -> ResourceContent:
        """Return the resource body, fetching on cache miss.

        Raises ResourceNotFoundError for unknown URIs; PlatformAPIError
        propagates from the client.
        """
        definition = self._definitions.get(uri)
        if definition is None:
            raise ResourceNotFoundError(uri)

        name = uri.removeprefix(RESOURCE_URI_PREFIX)
        data = self._cache.get(account_name, region, name)
        if data is None:
            data = await client.get(self._paths[uri])
            self._cache.set(account_name, region, name, data)

        return ResourceContent(
            uri=uri, mime_type=definition.mime_type, text=json.dumps(data, indent=2)
        )
