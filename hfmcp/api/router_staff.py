"""Staff lookup used by the consent form's client-side validation."""

from fastapi import APIRouter

from hfmcp.api.schemas import ValidateStaffPayload, ValidateStaffResponse
from hfmcp.core.deps import HttpClient
from hfmcp.oauth.staff_validator import (
    SUPPORTED_REGIONS,
    is_valid_account_name,
    validate_and_resolve_staff,
)

router = APIRouter(prefix="/api", tags=["consent"])


@router.post(
    "/validate-staff",
    response_model=ValidateStaffResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def validate_staff(
    payload: ValidateStaffPayload,
    http_client: HttpClient,
) -> ValidateStaffResponse:
    """POST /api/validate-staff -- check credentials and e-mail before submit."""
    if not (payload.account_name and payload.api_key and payload.auth_code and payload.email):
        return ValidateStaffResponse(valid=False, error="All fields are required")
    if not is_valid_account_name(payload.account_name):
        return ValidateStaffResponse(valid=False, error="Invalid account name format")
    if payload.region not in SUPPORTED_REGIONS:
        return ValidateStaffResponse(valid=False, error="Region must be 'us' or 'eu'")

    result = await validate_and_resolve_staff(
        http_client,
        api_key=payload.api_key,
        auth_code=payload.auth_code,
        account_name=payload.account_name,
        region=payload.region,
        email=payload.email,
    )
    return ValidateStaffResponse(
        valid=result.valid, staff_name=result.staff_name, error=result.error
    )
