"""Approval dialog shown before a browser is sent to the upstream provider."""

from dataclasses import dataclass, field
from html import escape

from fastapi import Request
from fastapi.responses import HTMLResponse

from .consent import (
    build_approval_cookie,
    get_approved_clients,
    issue_csrf_token,
    verify_csrf_token,
)
from .errors import InvalidSubmissionError, StateDecodeError
from .models import AuthorizationRequest, ClientMetadata, ServerMetadata
from .state_codec import decode_state, encode_state
from .utils.logger import logger


@dataclass
class ApprovalSubmission:
    """Result of a posted approval form."""

    auth_request: AuthorizationRequest
    remember_approval: bool
    set_cookie_headers: list[str] = field(default_factory=list)


APPROVAL_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{client_name} | Authorization Request</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
               background: #f9fafb; color: #333; margin: 0; padding: 0; line-height: 1.6; }}
        .container {{ max-width: 600px; margin: 2rem auto; padding: 1rem; }}
        .header {{ display: flex; align-items: center; justify-content: center; margin-bottom: 2rem; }}
        .logo {{ width: 48px; height: 48px; margin-right: 1rem; object-fit: contain; }}
        .title {{ margin: 0; font-size: 1.3rem; font-weight: 400; }}
        .card {{ background: #fff; border-radius: 8px; box-shadow: 0 8px 36px 8px rgba(0,0,0,0.1);
                padding: 2rem; }}
        .description {{ color: #555; }}
        .client-info {{ border: 1px solid #e5e7eb; border-radius: 6px; padding: 1rem 1rem 0.5rem;
                       margin-bottom: 1.5rem; }}
        .detail {{ display: flex; margin-bottom: 0.5rem; }}
        .detail-label {{ font-weight: 500; min-width: 120px; }}
        .detail-value {{ font-family: SFMono-Regular, Menlo, Monaco, Consolas, monospace;
                        word-break: break-all; }}
        .actions {{ display: flex; justify-content: flex-end; gap: 1rem; margin-top: 2rem; }}
        .button {{ padding: 0.75rem 1.5rem; border-radius: 6px; font-weight: 500; cursor: pointer;
                  border: none; font-size: 1rem; }}
        .button-primary {{ background: #0070f3; color: #fff; }}
        .button-secondary {{ background: transparent; border: 1px solid #e5e7eb; color: #333; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            {server_logo}
            <h1 class="title"><strong>{server_name}</strong></h1>
        </div>
        <div class="card">
            {server_description}
            <h2 class="title">{client_logo}<strong>{client_name}</strong> is requesting access</h2>
            <div class="client-info">
                {client_details}
            </div>
            <p>This MCP client is requesting to be authorized on {server_name}.
               If you approve, you will be redirected to complete authentication.</p>
            <form method="post" action="{action}">
                <input type="hidden" name="state" value="{state}">
                <input type="hidden" name="csrf_token" value="{csrf_token}">
                <label>
                    <input type="checkbox" name="remember" value="true" checked>
                    Remember this approval for {client_name}
                </label>
                <div class="actions">
                    <button type="button" class="button button-secondary" onclick="window.history.back()">Cancel</button>
                    <button type="submit" class="button button-primary">Approve</button>
                </div>
            </form>
        </div>
    </div>
</body>
</html>
"""


def _detail(label: str, value: str | None, link: bool = False) -> str:
    if not value:
        return ""
    shown = escape(value)
    if link:
        shown = f'<a href="{shown}" target="_blank" rel="noopener noreferrer">{shown}</a>'
    return (
        f'<div class="detail"><div class="detail-label">{escape(label)}:</div>'
        f'<div class="detail-value">{shown}</div></div>'
    )


def render_approval_dialog(
    request: Request,
    auth_request: AuthorizationRequest,
    client: ClientMetadata | None,
    server: ServerMetadata,
    secret: str,
) -> HTMLResponse:
    """Render the consent page for ``auth_request``.

    Only the encoded relay state is embedded in the form, never the raw
    request fields. The response sets a CSRF cookie whose signed token is
    echoed in the form, tying the submission to this rendering.
    """
    csrf_cookie, csrf_token = issue_csrf_token(secret)

    client_name = (client.client_name if client else None) or "Unknown MCP Client"

    details = [_detail("Name", client_name)]
    if client:
        details += [
            _detail("Website", client.client_uri, link=True),
            _detail("Privacy Policy", client.policy_uri, link=True),
            _detail("Terms of Service", client.tos_uri, link=True),
            _detail("Redirect URIs", ", ".join(client.redirect_uris)),
            _detail("Contact", ", ".join(client.contacts)),
        ]

    client_logo = ""
    if client and client.logo_uri:
        client_logo = (
            f'<img src="{escape(client.logo_uri)}" alt="{escape(client_name)} logo" class="logo">'
        )

    html = APPROVAL_PAGE.format(
        client_name=escape(client_name),
        client_logo=client_logo,
        client_details="".join(details),
        server_name=escape(server.name),
        server_logo=(
            f'<img src="{escape(server.logo)}" alt="{escape(server.name)} logo" class="logo">'
            if server.logo
            else ""
        ),
        server_description=(
            f'<p class="description">{escape(server.description)}</p>'
            if server.description
            else ""
        ),
        action=escape(request.url.path),
        state=escape(encode_state(auth_request)),
        csrf_token=escape(csrf_token),
    )

    logger.info("Rendering approval dialog for client %s", auth_request.client_id)
    return HTMLResponse(
        content=html,
        headers={
            "Cache-Control": "no-store",
            "X-Frame-Options": "DENY",
            "Set-Cookie": csrf_cookie,
        },
    )


async def parse_approval_submission(request: Request, secret: str) -> ApprovalSubmission:
    """Decode a posted approval form back into the original authorization request.

    Raises:
        InvalidSubmissionError: If the form lacks a decodable ``state`` field
            or its CSRF token does not match the browser's CSRF cookie.
    """
    if request.method != "POST":
        raise InvalidSubmissionError("Invalid request method")

    form = await request.form()
    csrf_token = form.get("csrf_token")
    if not isinstance(csrf_token, str) or not verify_csrf_token(
        request.cookies, csrf_token, secret
    ):
        logger.warning("Approval form submitted without a valid CSRF token")
        raise InvalidSubmissionError("Invalid CSRF token")

    encoded_state = form.get("state")
    if not isinstance(encoded_state, str) or not encoded_state:
        logger.warning("Approval form submitted without state")
        raise InvalidSubmissionError("Missing state in form data")

    try:
        auth_request = decode_state(encoded_state)
    except StateDecodeError as e:
        logger.warning("Approval form submitted with undecodable state")
        raise InvalidSubmissionError("Invalid state in form data") from e

    remember = form.get("remember") in ("true", "on", "1")

    headers = []
    if remember:
        previous = get_approved_clients(request.cookies, secret)
        headers.append(build_approval_cookie(previous, auth_request.client_id, secret))
        logger.info("Remembering approval for client %s", auth_request.client_id)

    return ApprovalSubmission(
        auth_request=auth_request,
        remember_approval=remember,
        set_cookie_headers=headers,
    )
