"""Tool-to-scope policy and actor identity injection."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, TypeVar

from hfmcp.oauth.types import (
    AVAILABLE_SCOPES,
    DEFAULT_SCOPES,
    SCOPE_ADMIN,
    SCOPE_READ,
    SCOPE_WRITE,
)

TOOL_SCOPE_MAP: dict[str, str] = {
    "happyfox_list_tickets": SCOPE_READ,
    "happyfox_get_ticket": SCOPE_READ,
    "happyfox_list_contacts": SCOPE_READ,
    "happyfox_get_contact": SCOPE_READ,
    "happyfox_get_contact_group": SCOPE_READ,
    "happyfox_list_assets": SCOPE_READ,
    "happyfox_get_asset": SCOPE_READ,
    "happyfox_list_asset_custom_fields": SCOPE_READ,
    "happyfox_get_asset_custom_field": SCOPE_READ,
    "happyfox_create_ticket": SCOPE_WRITE,
    "happyfox_create_tickets_bulk": SCOPE_WRITE,
    "happyfox_add_staff_reply": SCOPE_WRITE,
    "happyfox_add_private_note": SCOPE_WRITE,
    "happyfox_add_contact_reply": SCOPE_WRITE,
    "happyfox_forward_ticket": SCOPE_WRITE,
    "happyfox_update_ticket_tags": SCOPE_WRITE,
    "happyfox_update_ticket_custom_fields": SCOPE_WRITE,
    "happyfox_subscribe_to_ticket": SCOPE_WRITE,
    "happyfox_unsubscribe_from_ticket": SCOPE_WRITE,
    "happyfox_create_contact": SCOPE_WRITE,
    "happyfox_update_contact": SCOPE_WRITE,
    "happyfox_create_contact_group": SCOPE_WRITE,
    "happyfox_update_contact_group": SCOPE_WRITE,
    "happyfox_add_contacts_to_group": SCOPE_WRITE,
    "happyfox_remove_contacts_from_group": SCOPE_WRITE,
    "happyfox_create_asset": SCOPE_WRITE,
    "happyfox_update_asset": SCOPE_WRITE,
    "happyfox_delete_ticket": SCOPE_ADMIN,
    "happyfox_move_ticket_category": SCOPE_ADMIN,
    "happyfox_delete_asset": SCOPE_ADMIN,
}

# Parameter that names the acting staff member, per tool.
TOOL_IDENTITY_PARAMS: dict[str, str] = {
    "happyfox_add_staff_reply": "staff_id",
    "happyfox_add_private_note": "staff_id",
    "happyfox_forward_ticket": "staff_id",
    "happyfox_delete_ticket": "staff_id",
    "happyfox_move_ticket_category": "staff_id",
    "happyfox_update_ticket_tags": "staff_id",
    "happyfox_subscribe_to_ticket": "staff_id",
    "happyfox_unsubscribe_from_ticket": "staff_id",
    "happyfox_create_asset": "created_by",
    "happyfox_update_asset": "updated_by",
    "happyfox_delete_asset": "deleted_by",
}

RESOURCE_SCOPE = SCOPE_READ


class NamedTool(Protocol):
    name: str


T = TypeVar("T", bound=NamedTool)


def required_scopes(tool_name: str) -> frozenset[str] | None:
    """Scopes any one of which unlocks the tool; None for unknown tools."""
    scope = TOOL_SCOPE_MAP.get(tool_name)
    if scope is None:
        return None
    return frozenset({scope})


def permits(granted_scopes: Iterable[str], tool_name: str) -> bool:
    """True if the grant unlocks the tool. Unknown tools are denied."""
    required = required_scopes(tool_name)
    if required is None:
        return False
    return not required.isdisjoint(granted_scopes)


def permits_resources(granted_scopes: Iterable[str]) -> bool:
    return RESOURCE_SCOPE in set(granted_scopes)


def filter_by_scope(tools: Sequence[T], granted_scopes: Iterable[str]) -> list[T]:
    """Keep only the tools the grant unlocks, preserving order."""
    granted = set(granted_scopes)
    return [tool for tool in tools if permits(granted, tool.name)]


def inject_identity(
    tool_name: str, args: Mapping[str, Any], staff_id: int
) -> dict[str, Any]:
    """Fill the tool's actor parameter with staff_id if the caller omitted it."""
    enriched = dict(args)
    param = TOOL_IDENTITY_PARAMS.get(tool_name)
    if param is not None and enriched.get(param) is None:
        enriched[param] = staff_id
    return enriched


def negotiate_scopes(requested: str | None) -> list[str] | None:
    """Intersect space-separated requested scopes with the vocabulary.

    Returns the default set when nothing was requested and None when the
    request named only unsupported scopes.
    """
    names = (requested or "").split()
    if not names:
        return list(DEFAULT_SCOPES)
    granted = [s for s in AVAILABLE_SCOPES if s in names]
    return granted or None
