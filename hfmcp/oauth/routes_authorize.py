"""OAuth authorization endpoint with the HappyFox credential consent form."""

import logging
from typing import Annotated

from fastapi import APIRouter, Form, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import HTMLResponse, Response

from hfmcp.core.deps import DbSession, HttpClient, Resolver, SettingsDep, Store
from hfmcp.crypto.cipher import KeyConfigurationError
from hfmcp.oauth.auth_code import AuthCodeParams, create_authorization_code
from hfmcp.oauth.consent import render_consent_page, render_error_page
from hfmcp.oauth.flow import (
    FlowError,
    PreparedAuthorization,
    build_grant,
    callback_url,
    new_csrf_token,
    prepare_authorization,
    validate_submission,
)
from hfmcp.oauth.staff_validator import validate_and_resolve_staff
from hfmcp.oauth.types import AuthorizationRequest, ConsentForm

logger = logging.getLogger(__name__)

router = APIRouter()

CSRF_COOKIE = "csrf_token"
CSRF_COOKIE_PATH = "/authorize"
CSRF_COOKIE_MAX_AGE = 600
HTTP_BAD_REQUEST = 400
HTTP_SERVER_ERROR = 500


def _with_csrf_cookie(response: Response, token: str) -> Response:
    response.set_cookie(
        CSRF_COOKIE,
        token,
        max_age=CSRF_COOKIE_MAX_AGE,
        path=CSRF_COOKIE_PATH,
        secure=True,
        httponly=True,
        samesite="lax",
    )
    return response


def _misconfigured_page() -> HTMLResponse:
    return render_error_page(
        "Server Error",
        "The server is misconfigured. Please contact the administrator.",
        HTTP_SERVER_ERROR,
    )


def _form_again(
    prepared: PreparedAuthorization, form: ConsentForm, error: str
) -> Response:
    """Re-render the form keeping only the non-secret fields."""
    token = new_csrf_token()
    page = render_consent_page(
        prepared.client,
        prepared.scopes,
        token,
        error=error,
        account_name=form.account_name,
        email=form.email,
        region=form.region,
        status_code=HTTP_BAD_REQUEST,
    )
    return _with_csrf_cookie(page, token)


@router.get("/authorize", response_model=None)
async def authorize_get(
    q: Annotated[AuthorizationRequest, Query()],
    resolver: Resolver,
    settings: SettingsDep,
) -> Response:
    """GET /authorize -- show the consent form."""
    if settings.misconfiguration() is not None:
        return _misconfigured_page()
    try:
        prepared = await prepare_authorization(q, resolver)
    except FlowError as exc:
        return render_error_page(exc.title, exc.message, exc.status_code)

    token = new_csrf_token()
    page = render_consent_page(prepared.client, prepared.scopes, token)
    return _with_csrf_cookie(page, token)


@router.post("/authorize", response_model=None)
async def authorize_post(
    request: Request,
    q: Annotated[AuthorizationRequest, Query()],
    form: Annotated[ConsentForm, Form()],
    resolver: Resolver,
    settings: SettingsDep,
    store: Store,
    db: DbSession,
    http_client: HttpClient,
) -> Response:
    """POST /authorize -- verify credentials, persist them, redirect with a code."""
    reason = settings.misconfiguration()
    if reason is not None:
        logger.error("Refusing authorization: %s", reason)
        return _misconfigured_page()
    try:
        prepared = await prepare_authorization(q, resolver)
    except FlowError as exc:
        return render_error_page(exc.title, exc.message, exc.status_code)

    error = validate_submission(form, request.cookies.get(CSRF_COOKIE))
    if error is not None:
        return _form_again(prepared, form, error)

    staff = await validate_and_resolve_staff(
        http_client,
        api_key=form.api_key,
        auth_code=form.auth_code,
        account_name=form.account_name,
        region=form.region,
        email=form.email,
    )
    if not staff.valid:
        return _form_again(prepared, form, staff.error or "Validation failed")

    credentials, props = build_grant(form, staff, prepared.scopes, settings.credential_ttl)
    try:
        await store.store(props.grant_id, credentials)
        code = await create_authorization_code(
            db,
            AuthCodeParams(
                client_id=q.client_id,
                redirect_uri=q.redirect_uri,
                code_challenge=q.code_challenge or "",
                props=props,
                ttl_seconds=settings.auth_code_ttl,
            ),
        )
        await db.commit()
    except (SQLAlchemyError, KeyConfigurationError):
        logger.exception("Failed to persist grant for %s", form.account_name)
        await db.rollback()
        return render_error_page(
            "Authorization Failed",
            "Your credentials could not be saved. Please try again.",
            HTTP_SERVER_ERROR,
        )

    logger.info(
        "Grant completed for staff %s on %s (%s)",
        props.staff_id, props.account_name, " ".join(props.scopes),
    )
    response = RedirectResponse(
        url=callback_url(q.redirect_uri, code, q.state), status_code=302
    )
    response.delete_cookie(CSRF_COOKIE, path=CSRF_COOKIE_PATH)
    return response
