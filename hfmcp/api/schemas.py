"""Pydantic schemas for the consent page's JSON helper API."""

from pydantic import BaseModel, ConfigDict


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class ValidateStaffPayload(BaseModel):
    """Request body for POST /api/validate-staff."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    account_name: str = ""
    api_key: str = ""
    auth_code: str = ""
    region: str = "us"
    email: str = ""


class ValidateStaffResponse(BaseModel):
    """Response for POST /api/validate-staff."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    valid: bool
    staff_name: str | None = None
    error: str | None = None
