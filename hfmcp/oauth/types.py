"""Type definitions for the OAuth grant flow and stored credentials."""

from typing import Literal

from pydantic import BaseModel, Field

Region = Literal["us", "eu"]

SCOPE_READ = "happyfox:read"
SCOPE_WRITE = "happyfox:write"
SCOPE_ADMIN = "happyfox:admin"

AVAILABLE_SCOPES = [SCOPE_READ, SCOPE_WRITE, SCOPE_ADMIN]
DEFAULT_SCOPES = [SCOPE_READ]

SCOPE_DESCRIPTIONS = {
    SCOPE_READ: "Read tickets, contacts, and assets",
    SCOPE_WRITE: "Create and update tickets, add replies",
    SCOPE_ADMIN: "Delete tickets, manage categories",
}


class GrantCredentials(BaseModel):
    """HappyFox credentials unlocked by a grant. Only ever stored encrypted."""

    api_key: str
    auth_code: str
    account_name: str
    region: Region = "us"
    staff_id: int
    staff_name: str
    staff_email: str
    created_at: int
    expires_at: int


class GrantProps(BaseModel):
    """Authorization artifact carried by codes and access tokens."""

    grant_id: str
    staff_id: int
    staff_email: str
    account_name: str
    region: Region = "us"
    scopes: list[str] = Field(default_factory=list)


class ClientIdentityDocument(BaseModel):
    """Client ID Metadata Document served from the client's own URL."""

    client_id: str
    client_name: str
    client_uri: str | None = None
    logo_uri: str | None = None
    redirect_uris: list[str]
    scope: str | None = None
    grant_types: list[str] | None = None
    response_types: list[str] | None = None
    token_endpoint_auth_method: str | None = None
    contacts: list[str] | None = None


class AuthorizationRequest(BaseModel):
    """Query parameters of GET/POST /authorize."""

    response_type: str = ""
    client_id: str = ""
    redirect_uri: str = ""
    scope: str = ""
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None


class ConsentForm(BaseModel):
    """Fields posted by the consent page."""

    csrf_token: str = ""
    account_name: str = ""
    api_key: str = ""
    auth_code: str = ""
    email: str = ""
    region: str = "us"


class StaffValidationResult(BaseModel):
    """Outcome of checking credentials against the staff directory."""

    valid: bool
    staff_id: int | None = None
    staff_name: str | None = None
    error: str | None = None


class TokenResponse(BaseModel):
    """OAuth token endpoint response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None
