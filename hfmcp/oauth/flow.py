"""Authorization flow steps: request checks, client resolution, consent checks."""

import logging
import secrets
import time
from urllib.parse import urlencode

from pydantic import BaseModel

from hfmcp.oauth.client_identity import (
    ClientIdentityError,
    ClientIdentityResolver,
    validate_redirect_uri,
)
from hfmcp.oauth.scopes import negotiate_scopes
from hfmcp.oauth.staff_validator import SUPPORTED_REGIONS, is_valid_account_name
from hfmcp.oauth.types import (
    AuthorizationRequest,
    ClientIdentityDocument,
    ConsentForm,
    GrantCredentials,
    GrantProps,
    StaffValidationResult,
)

logger = logging.getLogger(__name__)


class FlowError(Exception):
    """Terminates the flow with a rendered error page."""

    def __init__(self, title: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.title = title
        self.message = message
        self.status_code = status_code


class PreparedAuthorization(BaseModel):
    """A request that passed validation, with its client and scopes."""

    request: AuthorizationRequest
    client: ClientIdentityDocument
    scopes: list[str]


def validate_authorization_request(req: AuthorizationRequest) -> None:
    """Reject anything but response_type=code with an S256 PKCE challenge."""
    if req.response_type != "code":
        raise FlowError(
            "Unsupported Response Type",
            f"Unsupported response_type: {req.response_type or 'none'}. "
            "Only 'code' is supported.",
        )
    if not req.code_challenge:
        raise FlowError("Invalid Request", "PKCE code_challenge is required.")
    if req.code_challenge_method != "S256":
        raise FlowError(
            "Invalid Request", "PKCE code_challenge_method must be S256."
        )
    if not req.client_id:
        raise FlowError("Invalid Request", "client_id is required.")
    if not req.redirect_uri:
        raise FlowError("Invalid Request", "redirect_uri is required.")


async def prepare_authorization(
    req: AuthorizationRequest, resolver: ClientIdentityResolver
) -> PreparedAuthorization:
    """Validate the request, resolve the client and negotiate scopes."""
    validate_authorization_request(req)

    try:
        client = await resolver.resolve(req.client_id)
    except ClientIdentityError as exc:
        logger.warning("Client resolution failed (%s): %s", exc.code, exc)
        raise FlowError("Invalid Client", str(exc)) from exc

    if not validate_redirect_uri(client, req.redirect_uri):
        raise FlowError(
            "Invalid Redirect URI",
            "The redirect_uri is not registered for this client.",
        )

    scopes = negotiate_scopes(req.scope)
    if scopes is None:
        raise FlowError(
            "Invalid Scope", f"None of the requested scopes are supported: {req.scope}"
        )
    return PreparedAuthorization(request=req, client=client, scopes=scopes)


def new_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def validate_submission(form: ConsentForm, csrf_cookie: str | None) -> str | None:
    """Return a user-facing error for a bad submission, else None."""
    if (
        not form.csrf_token
        or not csrf_cookie
        or not secrets.compare_digest(form.csrf_token, csrf_cookie)
    ):
        return "Your session has expired or the form was tampered with. Please try again."
    if not (form.account_name and form.api_key and form.auth_code and form.email):
        return "All fields are required."
    if not is_valid_account_name(form.account_name):
        return (
            "Invalid account name. Use your HappyFox subdomain "
            "(letters, numbers and single hyphens only)."
        )
    if form.region not in SUPPORTED_REGIONS:
        return "Region must be 'us' or 'eu'."
    return None


def build_grant(
    form: ConsentForm,
    staff: StaffValidationResult,
    scopes: list[str],
    credential_ttl: int,
) -> tuple[GrantCredentials, GrantProps]:
    """Mint a grant id and the records that hang off it."""
    grant_id = secrets.token_urlsafe(32)
    now = int(time.time())
    credentials = GrantCredentials(
        api_key=form.api_key,
        auth_code=form.auth_code,
        account_name=form.account_name,
        region=form.region,
        staff_id=staff.staff_id,
        staff_name=staff.staff_name or "",
        staff_email=form.email.strip(),
        created_at=now,
        expires_at=now + credential_ttl,
    )
    props = GrantProps(
        grant_id=grant_id,
        staff_id=credentials.staff_id,
        staff_email=credentials.staff_email,
        account_name=credentials.account_name,
        region=credentials.region,
        scopes=scopes,
    )
    return credentials, props


def callback_url(redirect_uri: str, code: str, state: str | None) -> str:
    params = {"code": code}
    if state:
        params["state"] = state
    sep = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{sep}{urlencode(params)}"
