"""Consent and error page rendering with Jinja2 templates."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.responses import HTMLResponse

from hfmcp.oauth.types import SCOPE_DESCRIPTIONS, ClientIdentityDocument

TEMPLATE_DIR = Path(__file__).parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_consent_page(
    client: ClientIdentityDocument,
    scopes: list[str],
    csrf_token: str,
    *,
    error: str | None = None,
    account_name: str = "",
    email: str = "",
    region: str = "us",
    status_code: int = 200,
) -> HTMLResponse:
    """Render the credential form. Secret fields are never pre-filled."""
    html = _env.get_template("consent.html").render(
        client_name=client.client_name,
        client_uri=client.client_uri,
        logo_uri=client.logo_uri,
        scope_descriptions=[SCOPE_DESCRIPTIONS.get(s, s) for s in scopes],
        csrf_token=csrf_token,
        error=error,
        account_name=account_name,
        email=email,
        region=region,
    )
    return HTMLResponse(html, status_code=status_code)


def render_error_page(title: str, message: str, status_code: int = 400) -> HTMLResponse:
    html = _env.get_template("error.html").render(title=title, message=message)
    return HTMLResponse(html, status_code=status_code)
