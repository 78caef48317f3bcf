"""FastAPI server relaying downstream authorization requests through Google OAuth.

Flow:
    GET  /authorize  -> approval dialog, or straight to Google if the consent
                        cookie already lists the client
    POST /authorize  -> approval form submitted, redirect to Google
    GET  /callback   -> code exchanged, identity fetched, downstream grant
                        minted, browser sent back to the client

Nothing is stored between requests: the downstream request rides in the
upstream ``state`` parameter and prior approvals in a signed cookie.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from starlette.middleware.cors import CORSMiddleware

from .approval import parse_approval_submission, render_approval_dialog
from .config import RelayConfig
from .consent import is_client_approved
from .errors import BadRequestError, CompletionError, OAuthRelayError
from .models import AuthorizationRequest, SessionProps
from .provider import AuthorizationProvider, InMemoryAuthorizationProvider
from .state_codec import decode_state, encode_state
from .upstream import GoogleOAuthClient
from .utils.helpers import get_base_url, mask_params
from .utils.logger import logger

try:
    __version__ = version("mcp-google-oauth")
except PackageNotFoundError:
    __version__ = "0.1.0"

router = APIRouter()


def _config(request: Request) -> RelayConfig:
    return request.app.state.relay_config


def _provider(request: Request) -> AuthorizationProvider:
    return request.app.state.provider


def _upstream(request: Request) -> GoogleOAuthClient:
    return request.app.state.upstream


def _callback_url(request: Request) -> str:
    return f"{get_base_url(request, _config(request).force_https_domains)}/callback"


def redirect_to_upstream(
    request: Request,
    auth_request: AuthorizationRequest,
    set_cookie_headers: list[str] | None = None,
) -> Response:
    """Send the browser to Google with the downstream request as relay state."""
    url = _upstream(request).build_authorize_url(
        redirect_uri=_callback_url(request),
        state=encode_state(auth_request),
    )
    response = RedirectResponse(url=url, status_code=302)
    for header in set_cookie_headers or []:
        response.headers.append("set-cookie", header)

    logger.info("Redirecting client %s to upstream authorization", auth_request.client_id)
    return response


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "mcp-google-oauth", "version": __version__}


@router.get("/authorize")
async def authorize(request: Request) -> Response:
    """Handle a downstream authorization request."""
    logger.info(
        "Authorization request received with parameters: %s",
        mask_params(dict(request.query_params), ("state", "code_challenge")),
    )

    auth_request = await _provider(request).parse_auth_request(request)
    if not auth_request.client_id:
        logger.error("Authorization request missing client_id")
        raise BadRequestError("Invalid request")

    config = _config(request)
    if is_client_approved(request, auth_request.client_id, config.cookie_encryption_key):
        logger.info("Client %s already approved by this browser", auth_request.client_id)
        return redirect_to_upstream(request, auth_request)

    client = await _provider(request).lookup_client(auth_request.client_id)
    return render_approval_dialog(
        request,
        auth_request,
        client=client,
        server=config.server_metadata,
        secret=config.cookie_encryption_key,
    )


@router.post("/authorize")
async def approve(request: Request) -> Response:
    """Handle the approval dialog submission."""
    submission = await parse_approval_submission(
        request, _config(request).cookie_encryption_key
    )
    return redirect_to_upstream(
        request, submission.auth_request, submission.set_cookie_headers
    )


@router.get("/callback")
async def callback(request: Request) -> Response:
    """Complete the upstream round trip and hand the result downstream."""
    params = request.query_params
    logger.info(
        "OAuth callback received with parameters: %s",
        mask_params(dict(params), ("code", "state")),
    )

    error = params.get("error")
    if error:
        logger.warning(
            "OAuth callback received error: %s - %s",
            error,
            params.get("error_description", "No description"),
        )
        raise BadRequestError(f"Authorization failed: {error}")

    state = params.get("state")
    if not state:
        raise BadRequestError("Missing state")
    code = params.get("code")
    if not code:
        raise BadRequestError("Missing code")

    auth_request = decode_state(state)

    upstream = _upstream(request)
    access_token, error_response = await upstream.exchange_code(code, _callback_url(request))
    if error_response is not None:
        return error_response

    user = await upstream.fetch_user_info(access_token)
    props = SessionProps.from_user_info(user, access_token)

    try:
        result = await _provider(request).complete_authorization(
            request=auth_request,
            user_id=user.sub,
            metadata={"label": user.name},
            scope=auth_request.scope,
            props=props,
        )
    except OAuthRelayError:
        raise
    except Exception as e:
        logger.exception("Downstream authorization completion failed")
        raise CompletionError("Failed to complete authorization") from e

    logger.info("Authorization completed for user %s", user.email)
    return RedirectResponse(url=result.redirect_to, status_code=302)


async def relay_error_handler(request: Request, exc: OAuthRelayError) -> Response:
    """Render relay failures as plain text."""
    if exc.status_code >= 500:
        logger.error("%s failed: %s", request.url.path, exc.message)
    else:
        logger.warning("%s rejected: %s", request.url.path, exc.message)
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(
    config: RelayConfig,
    provider: AuthorizationProvider | None = None,
    upstream: GoogleOAuthClient | None = None,
) -> FastAPI:
    """Build the relay application around its collaborators."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Application startup - OAuth relay for %r", upstream_client)
        yield
        logger.info("Application shutdown completed")

    upstream_client = upstream or GoogleOAuthClient(
        config.google_client_id,
        config.google_client_secret,
        timeout=config.upstream_timeout,
    )

    app = FastAPI(
        title="MCP Google OAuth Relay",
        description="Relays MCP client authorization through Google OAuth 2.0",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay_config = config
    app.state.provider = provider if provider is not None else InMemoryAuthorizationProvider()
    app.state.upstream = upstream_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(OAuthRelayError, relay_error_handler)
    app.include_router(router)
    return app
