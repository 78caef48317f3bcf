"""Test configuration and fixtures for the OAuth relay tests."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from mcp_google_oauth.config import RelayConfig
from mcp_google_oauth.models import AuthorizationRequest, ClientMetadata
from mcp_google_oauth.provider import InMemoryAuthorizationProvider
from mcp_google_oauth.server import create_app
from mcp_google_oauth.upstream import GOOGLE_TOKEN_URL, GOOGLE_USERINFO_URL, GoogleOAuthClient

CLIENT_ID = "abc123"
CLIENT_REDIRECT_URI = "https://claude.ai/api/mcp/auth_callback"
COOKIE_SECRET = "test-cookie-secret"


class FakeGoogle:
    """Stand-in for Google's token and user-info endpoints."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: dict | str = {
            "access_token": "google-access-token",
            "expires_in": 3599,
            "token_type": "Bearer",
        }
        self.userinfo_status = 200
        self.userinfo_body: dict = {
            "sub": "u1",
            "name": "Jane",
            "email": "jane@x.com",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == GOOGLE_TOKEN_URL:
            if isinstance(self.token_body, str):
                return httpx.Response(self.token_status, text=self.token_body)
            return httpx.Response(self.token_status, json=self.token_body)
        if url == GOOGLE_USERINFO_URL:
            return httpx.Response(self.userinfo_status, json=self.userinfo_body)
        return httpx.Response(404)

    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == GOOGLE_TOKEN_URL]


@pytest.fixture
def fake_google():
    """Fake upstream provider recording every outbound request."""
    return FakeGoogle()


@pytest.fixture
def relay_config():
    """Relay configuration for testing."""
    return RelayConfig(
        google_client_id="test-client-id.apps.googleusercontent.com",
        google_client_secret="test-client-secret",
        cookie_encryption_key=COOKIE_SECRET,
        server_name="Test MCP Server",
        server_description="Test server description",
    )


@pytest.fixture
def registered_client():
    """A downstream MCP client known to the provider."""
    return ClientMetadata(
        client_id=CLIENT_ID,
        client_name="Claude Test Client",
        redirect_uris=[CLIENT_REDIRECT_URI],
        client_uri="https://claude.ai",
    )


@pytest.fixture
def provider(registered_client):
    """In-memory provider with one registered client."""
    return InMemoryAuthorizationProvider([registered_client])


@pytest.fixture
def upstream(relay_config, fake_google):
    """Google client whose HTTP traffic goes to the fake provider."""
    return GoogleOAuthClient(
        relay_config.google_client_id,
        relay_config.google_client_secret,
        transport=httpx.MockTransport(fake_google.handler),
    )


@pytest.fixture
def app(relay_config, provider, upstream):
    """Relay application wired to test doubles."""
    return create_app(relay_config, provider=provider, upstream=upstream)


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def auth_request():
    """A valid downstream authorization request."""
    return AuthorizationRequest(
        client_id=CLIENT_ID,
        redirect_uri=CLIENT_REDIRECT_URI,
        scope=["mcp:tools", "mcp:read"],
        state="client-state-xyz",
        code_challenge="E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM",
        code_challenge_method="S256",
    )


@pytest.fixture
def clients_config_file(tmp_path):
    """Client registry file for testing."""
    config_file = tmp_path / "clients.json"
    config_file.write_text(
        json.dumps(
            {
                "clients": {
                    CLIENT_ID: {
                        "client_name": "Claude Test Client",
                        "redirect_uris": [CLIENT_REDIRECT_URI],
                        "logo_uri": "https://claude.ai/logo.png",
                    },
                    "no-redirects": {"client_name": "Broken"},
                    "not-a-dict": "oops",
                }
            }
        )
    )
    return config_file
