"""Client for the upstream (Google) OAuth 2.0 endpoints."""

from urllib.parse import urlencode

import httpx
from fastapi.responses import PlainTextResponse, Response

from .errors import IdentityFetchError
from .models import GoogleUserInfo
from .utils.logger import logger

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

# Requested on every authorization; consent is not narrowed per tool.
GOOGLE_SCOPES = (
    "profile",
    "email",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/tasks",
)


class GoogleOAuthClient:
    """OAuth client registration of this server at the upstream provider.

    Each outbound call opens its own ``httpx.AsyncClient``. Timeouts surface
    as ``httpx.RequestError`` and are handled like any other transport failure.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        authorize_url: str = GOOGLE_AUTHORIZE_URL,
        token_url: str = GOOGLE_TOKEN_URL,
        userinfo_url: str = GOOGLE_USERINFO_URL,
        scopes: tuple[str, ...] = GOOGLE_SCOPES,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.scopes = scopes
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"GoogleOAuthClient(client_id={self.client_id!r})"

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    def build_authorize_url(self, redirect_uri: str, state: str) -> str:
        """Return the upstream authorization URL the browser is redirected to."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "response_type": "code",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, redirect_uri: str
    ) -> tuple[str | None, Response | None]:
        """Exchange an authorization code for an upstream access token.

        Returns ``(access_token, None)`` on success, otherwise
        ``(None, error_response)`` with a response that can be relayed to the
        browser as is. The code is single use, so nothing here is retried.
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }

        try:
            async with self._http_client() as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.RequestError as e:
            logger.error("Token exchange request failed: %s", e)
            return None, PlainTextResponse("Failed to fetch access token", status_code=502)

        logger.info("Token exchange response from upstream: status=%d", response.status_code)

        if not response.is_success:
            logger.error(
                "Token exchange failed - upstream response body: %s", response.text[:500]
            )
            return None, PlainTextResponse(
                f"Failed to fetch access token: {response.text}",
                status_code=response.status_code,
            )

        try:
            token_data = response.json()
        except ValueError:
            token_data = None

        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not access_token or not isinstance(access_token, str):
            logger.error("Token exchange succeeded but response has no access_token")
            return None, PlainTextResponse("Missing access token", status_code=400)

        logger.debug("Token types in response: %s", list(token_data.keys()))
        return access_token, None

    async def fetch_user_info(self, access_token: str) -> GoogleUserInfo:
        """Fetch the authenticated user's profile with a fresh access token.

        Raises:
            IdentityFetchError: On transport failure, a non-2xx status, or a
                body without a subject identifier.
        """
        try:
            async with self._http_client() as client:
                response = await client.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.RequestError as e:
            logger.error("User info request failed: %s", e)
            raise IdentityFetchError("Failed to fetch user info") from e

        if not response.is_success:
            logger.error("User info fetch failed: HTTP %d", response.status_code)
            raise IdentityFetchError("Failed to fetch user info")

        try:
            user = GoogleUserInfo.from_response(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("User info response could not be parsed: %s", e)
            raise IdentityFetchError("Failed to fetch user info") from e

        logger.info("Fetched upstream identity for user: %s", user.email)
        return user
