"""Catalogue of MCP tools and their mapping onto HappyFox endpoints."""

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hfmcp.platform.client import HappyFoxClient, PlatformAPIError

_PATH_PARAM = re.compile(r"\{(\w+)\}")
_PATH_VALUE = re.compile(r"[A-Za-z0-9_-]+")


class ToolNotFoundError(Exception):
    """Unknown tool name. Surfaces as a JSON-RPC protocol error."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name


class ToolExecutionError(Exception):
    """The tool ran but failed. Surfaces as a tool result with isError."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class ToolDefinition(BaseModel):
    """Tool as advertised by tools/list."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")


class ToolSpec(BaseModel):
    """How a tool call becomes an HTTP request."""

    name: str
    description: str
    method: str
    path: str
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    query_args: list[str] = Field(default_factory=list)
    body_arg: str | None = None

    def definition(self) -> ToolDefinition:
        schema: dict[str, Any] = {"type": "object", "properties": self.properties}
        if self.required:
            schema["required"] = self.required
        return ToolDefinition(
            name=self.name, description=self.description, input_schema=schema
        )


def _s(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def _n(description: str) -> dict[str, str]:
    return {"type": "number", "description": description}


def _b(description: str) -> dict[str, str]:
    return {"type": "boolean", "description": description}


def _a(description: str, item: str = "string") -> dict[str, Any]:
    return {"type": "array", "items": {"type": item}, "description": description}


def _o(description: str) -> dict[str, str]:
    return {"type": "object", "description": description}


_TICKET_ID = _s("Ticket ID")
_STAFF_ID = _n("Staff ID performing the action")
_PAGING = {"page": _n("Page number (default: 1)"), "size": _n("Page size (max: 50)")}

TOOL_SPECS: list[ToolSpec] = [
    ToolSpec(
        name="happyfox_create_ticket",
        description="Create a new ticket in HappyFox",
        method="POST",
        path="/tickets/",
        properties={
            "category": _s("Category ID"),
            "subject": _s("Ticket subject"),
            "text": _s("Ticket message text"),
            "email": _s("Contact email address"),
            "name": _s("Contact name"),
            "priority": _s("Priority ID"),
            "assignee": _s("Staff ID to assign to"),
            "tags": _a("Tags to add"),
            "custom_fields": _o("Custom field values (t-cf-{id}: value)"),
        },
        required=["category", "subject", "text", "email", "name"],
    ),
    ToolSpec(
        name="happyfox_create_tickets_bulk",
        description="Create several tickets in one request",
        method="POST",
        path="/tickets/",
        properties={"tickets": _a("Ticket objects to create", "object")},
        required=["tickets"],
        body_arg="tickets",
    ),
    ToolSpec(
        name="happyfox_list_tickets",
        description="List tickets with filters",
        method="GET",
        path="/tickets/",
        properties={
            **_PAGING,
            "category": _s("Filter by category ID"),
            "status": _s("Filter by status ID"),
            "q": _s("Search query using key:value filters"),
            "sort": _s("Sort field"),
            "minify_response": _b("Return minimal ticket data"),
        },
    ),
    ToolSpec(
        name="happyfox_get_ticket",
        description="Get ticket details by ID",
        method="GET",
        path="/ticket/{ticket_id}/",
        properties={
            "ticket_id": _TICKET_ID,
            "show_cf_changes": _b("Include custom field change history"),
        },
        required=["ticket_id"],
    ),
    ToolSpec(
        name="happyfox_update_ticket_tags",
        description="Add or remove tags from a ticket",
        method="POST",
        path="/ticket/{ticket_id}/update_tags/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff_id": _STAFF_ID,
            "add": _a("Tags to add"),
            "remove": _a("Tags to remove"),
        },
        required=["ticket_id"],
    ),
    ToolSpec(
        name="happyfox_update_ticket_custom_fields",
        description="Update custom field values on a ticket",
        method="POST",
        path="/ticket/{ticket_id}/update_custom_fields/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff": _STAFF_ID,
            "custom_fields": _o("Custom field values (t-cf-{id}: value)"),
        },
        required=["ticket_id", "custom_fields"],
    ),
    ToolSpec(
        name="happyfox_move_ticket_category",
        description="Move a ticket to a different category",
        method="POST",
        path="/ticket/{ticket_id}/move/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff_id": _STAFF_ID,
            "target_category_id": _s("Target category ID"),
        },
        required=["ticket_id", "target_category_id"],
    ),
    ToolSpec(
        name="happyfox_add_staff_reply",
        description="Add a staff reply to a ticket (visible to contact)",
        method="POST",
        path="/ticket/{ticket_id}/staff_update/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff_id": _STAFF_ID,
            "text": _s("Reply text (HTML supported)"),
            "status": _s("Update ticket status ID"),
            "priority": _s("Update ticket priority ID"),
            "assignee": _n("Reassign ticket to this staff ID"),
        },
        required=["ticket_id", "text"],
    ),
    ToolSpec(
        name="happyfox_add_private_note",
        description="Add a private note to a ticket (staff only)",
        method="POST",
        path="/ticket/{ticket_id}/staff_pvtnote/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff_id": _STAFF_ID,
            "text": _s("Note text"),
        },
        required=["ticket_id", "text"],
    ),
    ToolSpec(
        name="happyfox_add_contact_reply",
        description="Add a reply on behalf of the contact",
        method="POST",
        path="/ticket/{ticket_id}/user_reply/",
        properties={
            "ticket_id": _TICKET_ID,
            "user": _n("Contact ID"),
            "text": _s("Reply text"),
        },
        required=["ticket_id", "user", "text"],
    ),
    ToolSpec(
        name="happyfox_forward_ticket",
        description="Forward a ticket to external e-mail addresses",
        method="POST",
        path="/ticket/{ticket_id}/forward/",
        properties={
            "ticket_id": _TICKET_ID,
            "staff_id": _STAFF_ID,
            "to": _s("Recipient e-mail address"),
            "text": _s("Message text"),
        },
        required=["ticket_id", "to"],
    ),
    ToolSpec(
        name="happyfox_delete_ticket",
        description="Delete a ticket permanently",
        method="POST",
        path="/ticket/{ticket_id}/delete/",
        properties={"ticket_id": _TICKET_ID, "staff_id": _STAFF_ID},
        required=["ticket_id"],
    ),
    ToolSpec(
        name="happyfox_subscribe_to_ticket",
        description="Subscribe a staff member to ticket updates",
        method="POST",
        path="/ticket/{ticket_id}/subscribe/",
        properties={"ticket_id": _TICKET_ID, "staff_id": _STAFF_ID},
        required=["ticket_id"],
    ),
    ToolSpec(
        name="happyfox_unsubscribe_from_ticket",
        description="Unsubscribe a staff member from ticket updates",
        method="POST",
        path="/ticket/{ticket_id}/unsubscribe/",
        properties={"ticket_id": _TICKET_ID, "staff_id": _STAFF_ID},
        required=["ticket_id"],
    ),
    ToolSpec(
        name="happyfox_create_contact",
        description="Create a contact",
        method="POST",
        path="/users/",
        properties={
            "name": _s("Contact name"),
            "email": _s("Contact email"),
            "phones": _a("Phone numbers", "object"),
        },
        required=["name", "email"],
    ),
    ToolSpec(
        name="happyfox_list_contacts",
        description="List contacts",
        method="GET",
        path="/users/",
        properties={**_PAGING, "q": _s("Search query")},
    ),
    ToolSpec(
        name="happyfox_get_contact",
        description="Get contact details by ID",
        method="GET",
        path="/user/{contact_id}/",
        properties={"contact_id": _s("Contact ID")},
        required=["contact_id"],
    ),
    ToolSpec(
        name="happyfox_update_contact",
        description="Update a contact",
        method="POST",
        path="/user/{contact_id}/",
        properties={
            "contact_id": _s("Contact ID"),
            "name": _s("Contact name"),
            "email": _s("Contact email"),
        },
        required=["contact_id"],
    ),
    ToolSpec(
        name="happyfox_get_contact_group",
        description="Get contact group details by ID",
        method="GET",
        path="/contact_group/{group_id}/",
        properties={"group_id": _s("Contact group ID")},
        required=["group_id"],
    ),
    ToolSpec(
        name="happyfox_create_contact_group",
        description="Create a contact group",
        method="POST",
        path="/contact_groups/",
        properties={
            "name": _s("Group name"),
            "description": _s("Group description"),
            "tagged_domains": _a("E-mail domains auto-added to the group"),
        },
        required=["name"],
    ),
    ToolSpec(
        name="happyfox_update_contact_group",
        description="Update a contact group",
        method="POST",
        path="/contact_group/{group_id}/",
        properties={
            "group_id": _s("Contact group ID"),
            "name": _s("Group name"),
            "description": _s("Group description"),
        },
        required=["group_id"],
    ),
    ToolSpec(
        name="happyfox_add_contacts_to_group",
        description="Add contacts to a contact group",
        method="POST",
        path="/contact_group/{group_id}/update_contacts/",
        properties={
            "group_id": _s("Contact group ID"),
            "contacts": _a("Contact IDs", "number"),
        },
        required=["group_id", "contacts"],
    ),
    ToolSpec(
        name="happyfox_remove_contacts_from_group",
        description="Remove contacts from a contact group",
        method="POST",
        path="/contact_group/{group_id}/delete_contacts/",
        properties={
            "group_id": _s("Contact group ID"),
            "contacts": _a("Contact IDs", "number"),
        },
        required=["group_id", "contacts"],
    ),
    ToolSpec(
        name="happyfox_list_assets",
        description="List assets of an asset type",
        method="GET",
        path="/assets/",
        properties={**_PAGING, "asset_type": _n("Asset type ID")},
        required=["asset_type"],
    ),
    ToolSpec(
        name="happyfox_get_asset",
        description="Get asset details by ID",
        method="GET",
        path="/asset/{asset_id}/",
        properties={"asset_id": _n("Asset ID")},
        required=["asset_id"],
    ),
    ToolSpec(
        name="happyfox_create_asset",
        description="Create an asset",
        method="POST",
        path="/assets/",
        properties={
            "asset_type": _n("Asset type ID"),
            "name": _s("Asset name"),
            "display_id": _s("Display ID"),
            "created_by": _n("Staff ID creating the asset"),
            "custom_fields": _a("Custom field values", "object"),
        },
        required=["asset_type", "name"],
        query_args=["asset_type"],
    ),
    ToolSpec(
        name="happyfox_update_asset",
        description="Update an asset",
        method="PUT",
        path="/asset/{asset_id}/",
        properties={
            "asset_id": _n("Asset ID"),
            "name": _s("Asset name"),
            "updated_by": _n("Staff ID updating the asset"),
            "custom_fields": _a("Custom field values", "object"),
        },
        required=["asset_id"],
    ),
    ToolSpec(
        name="happyfox_delete_asset",
        description="Delete an asset",
        method="DELETE",
        path="/asset/{asset_id}/",
        properties={
            "asset_id": _n("Asset ID"),
            "deleted_by": _n("Staff ID deleting the asset"),
        },
        required=["asset_id"],
    ),
    ToolSpec(
        name="happyfox_list_asset_custom_fields",
        description="List custom fields of an asset type",
        method="GET",
        path="/asset_custom_fields/",
        properties={"asset_type": _n("Asset type ID")},
        required=["asset_type"],
    ),
    ToolSpec(
        name="happyfox_get_asset_custom_field",
        description="Get an asset custom field by ID",
        method="GET",
        path="/asset_custom_fields/{field_id}/",
        properties={"field_id": _n("Custom field ID")},
        required=["field_id"],
    ),
]


def _path_segment(spec: ToolSpec, name: str, value: Any) -> str:
    """Render one path argument; anything that could leave its segment is refused."""
    declared = spec.properties.get(name, {}).get("type")
    if isinstance(value, bool) or (
        declared == "number" and not isinstance(value, int) and not str(value).isdigit()
    ):
        raise ToolExecutionError(f"Invalid value for {name}: expected a number")
    text = str(value)
    if not _PATH_VALUE.fullmatch(text):
        raise ToolExecutionError(f"Invalid value for {name}: {text!r}")
    return text


class ToolRegistry:
    """Lists tools and turns calls into HappyFox requests."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        self._specs = {spec.name: spec for spec in (specs or TOOL_SPECS)}

    def list_tools(self) -> list[ToolDefinition]:
        return [spec.definition() for spec in self._specs.values()]

    def has_tool(self, name: str) -> bool:
        return name in self._specs

    async def call(
        self, name: str, args: Mapping[str, Any], client: HappyFoxClient
    ) -> Any:
        """Execute a tool. Raises ToolNotFoundError or ToolExecutionError."""
        spec = self._specs.get(name)
        if spec is None:
            raise ToolNotFoundError(name)

        missing = [field for field in spec.required if args.get(field) is None]
        if missing:
            raise ToolExecutionError(
                f"Missing required argument(s): {', '.join(missing)}"
            )

        remaining = dict(args)
        path = _PATH_PARAM.sub(
            lambda m: _path_segment(spec, m.group(1), remaining.pop(m.group(1))),
            spec.path,
        )
        query = {k: remaining.pop(k) for k in spec.query_args if k in remaining}

        try:
            if spec.method in ("GET", "DELETE"):
                query.update(remaining)
                return await client.request(spec.method, path, params=query or None)
            body = remaining.get(spec.body_arg) if spec.body_arg else remaining
            return await client.request(
                spec.method, path, body=body, params=query or None
            )
        except PlatformAPIError as exc:
            raise ToolExecutionError(str(exc), exc.status_code, exc.code) from exc
