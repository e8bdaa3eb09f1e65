"""Validate HappyFox credentials and resolve the staff member by e-mail."""

import logging
import re

import httpx

from hfmcp.oauth.types import StaffValidationResult
from hfmcp.platform.client import HappyFoxClient, PlatformAPIError

logger = logging.getLogger(__name__)

# Subdomain label: 1-63 alphanumerics/hyphens, no leading or trailing hyphen.
ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)
SUPPORTED_REGIONS = ("us", "eu")

_STATUS_MESSAGES = {
    401: "Invalid API Key or Auth Code",
    403: "Access denied. Check API permissions.",
    404: "Account not found. Check account subdomain.",
}


def is_valid_account_name(account_name: str) -> bool:
    """Account names become hostnames, so only plain subdomain labels pass."""
    return bool(ACCOUNT_NAME_PATTERN.fullmatch(account_name)) and "--" not in account_name


async def validate_and_resolve_staff(
    http_client: httpx.AsyncClient,
    *,
    api_key: str,
    auth_code: str,
    account_name: str,
    region: str,
    email: str,
    max_retries: int = 0,
) -> StaffValidationResult:
    """Look the e-mail up in the account's staff directory.

    The match is case-insensitive and ignores surrounding whitespace.
    """
    client = HappyFoxClient(
        http_client,
        api_key=api_key,
        auth_code=auth_code,
        account_name=account_name,
        region=region,
        max_retries=max_retries,
    )
    try:
        staff_list = await client.get("/staff/")
    except PlatformAPIError as exc:
        if exc.status_code in _STATUS_MESSAGES:
            return StaffValidationResult(valid=False, error=_STATUS_MESSAGES[exc.status_code])
        if exc.code == "NETWORK_ERROR":
            logger.warning("HappyFox staff lookup failed for %s: %s", account_name, exc)
            return StaffValidationResult(
                valid=False, error="Unable to connect to HappyFox. Please try again."
            )
        return StaffValidationResult(valid=False, error=str(exc))

    if not isinstance(staff_list, list):
        return StaffValidationResult(
            valid=False, error="Unexpected response from HappyFox API"
        )

    wanted = email.strip().lower()
    match = next(
        (
            staff
            for staff in staff_list
            if isinstance(staff, dict)
            and isinstance(staff.get("email"), str)
            and staff["email"].strip().lower() == wanted
        ),
        None,
    )
    if match is None:
        return StaffValidationResult(
            valid=False, error=f"No staff member found with email: {email}"
        )
    if match.get("is_active") is False:
        return StaffValidationResult(
            valid=False, error=f"Staff member {match['email']} is inactive"
        )

    staff_id = match.get("id")
    if not isinstance(staff_id, int) or isinstance(staff_id, bool):
        return StaffValidationResult(
            valid=False, error="Unexpected response from HappyFox API"
        )
    return StaffValidationResult(
        valid=True, staff_id=staff_id, staff_name=match.get("name")
    )
