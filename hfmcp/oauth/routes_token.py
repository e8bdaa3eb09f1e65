"""OAuth token endpoint (authorization_code and refresh_token grants)."""

from typing import Annotated

from fastapi import APIRouter, Form
from pydantic import BaseModel
from starlette.responses import JSONResponse

from hfmcp.core.deps import DbSession, SettingsDep, Store
from hfmcp.oauth.auth_code import redeem_authorization_code
from hfmcp.oauth.token_service import (
    TokenIssuanceParams,
    issue_tokens,
    refresh_tokens,
)
from hfmcp.oauth.types import TokenResponse

router = APIRouter()

HTTP_BAD_REQUEST = 400
NO_STORE = {"Cache-Control": "no-store"}


class _TokenForm(BaseModel):
    """Bundle form fields for the token endpoint."""

    grant_type: str
    code: str | None = None
    redirect_uri: str | None = None
    client_id: str | None = None
    code_verifier: str | None = None
    refresh_token: str | None = None


def _error(error: str, status_code: int = HTTP_BAD_REQUEST) -> JSONResponse:
    return JSONResponse({"error": error}, status_code=status_code, headers=NO_STORE)


def _issued(tokens: TokenResponse) -> JSONResponse:
    return JSONResponse(tokens.model_dump(exclude_none=True), headers=NO_STORE)


@router.post("/oauth/token", response_model=None)
async def token_endpoint(
    db: DbSession,
    settings: SettingsDep,
    store: Store,
    form: Annotated[_TokenForm, Form()],
) -> JSONResponse:
    """POST /oauth/token -- exchange auth code or refresh token."""
    if settings.misconfiguration() is not None:
        return _error("server_error", 500)
    if not form.client_id:
        return _error("invalid_request")

    params = TokenIssuanceParams(
        client_id=form.client_id,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
    )

    if form.grant_type == "authorization_code":
        if not form.code or not form.redirect_uri or not form.code_verifier:
            return _error("invalid_request")
        props = await redeem_authorization_code(
            db,
            code=form.code,
            client_id=form.client_id,
            redirect_uri=form.redirect_uri,
            code_verifier=form.code_verifier,
        )
        if props is None:
            return _error("invalid_grant")
        tokens = await issue_tokens(db, params, props)
        await db.commit()
        return _issued(tokens)

    if form.grant_type == "refresh_token":
        if not form.refresh_token:
            return _error("invalid_request")
        tokens = await refresh_tokens(db, params, form.refresh_token, store)
        if tokens is None:
            return _error("invalid_grant")
        await db.commit()
        return _issued(tokens)

    return _error("unsupported_grant_type")
