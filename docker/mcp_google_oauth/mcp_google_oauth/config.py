"""Service configuration loaded from environment variables."""

import json
import os
from dataclasses import dataclass, field

from .errors import ConfigurationError
from .models import ServerMetadata
from .utils.helpers import check_req_env_vars
from .utils.logger import logger

DEFAULT_SERVER_NAME = "Google MCP Server"
DEFAULT_SERVER_LOGO = (
    "https://www.google.com/images/branding/googlelogo/1x/googlelogo_color_272x92dp.png"
)
DEFAULT_SERVER_DESCRIPTION = "This MCP Remote Server uses Google for authentication."


@dataclass
class RelayConfig:
    """Process-wide settings for the authorization relay."""

    google_client_id: str
    google_client_secret: str
    cookie_encryption_key: str
    force_https_domains: list[str] = field(default_factory=list)
    clients_config_path: str | None = None
    server_name: str = DEFAULT_SERVER_NAME
    server_logo: str | None = DEFAULT_SERVER_LOGO
    server_description: str | None = DEFAULT_SERVER_DESCRIPTION
    upstream_timeout: float = 30.0

    def __repr__(self) -> str:
        return (
            f"RelayConfig(google_client_id={self.google_client_id!r}, "
            f"force_https_domains={self.force_https_domains!r}, "
            f"clients_config_path={self.clients_config_path!r})"
        )

    @property
    def server_metadata(self) -> ServerMetadata:
        return ServerMetadata(
            name=self.server_name,
            logo=self.server_logo,
            description=self.server_description,
        )


def _google_credentials_from_env() -> tuple[str, str]:
    """Read the upstream client id and secret.

    ``GOOGLE_OAUTH`` may hold the JSON downloaded from the Google console
    (``{"web": {"client_id": ..., "client_secret": ...}}``); individual
    ``GOOGLE_OAUTH_CLIENT_ID`` / ``GOOGLE_OAUTH_CLIENT_SECRET`` variables
    take precedence over it.
    """
    client_id = os.getenv("GOOGLE_OAUTH_CLIENT_ID", "")
    client_secret = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET", "")

    oauth_secret_json = os.getenv("GOOGLE_OAUTH", "")
    if oauth_secret_json.strip() and not (client_id and client_secret):
        try:
            oauth_info = json.loads(oauth_secret_json)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse GOOGLE_OAUTH as JSON: {e}")
            raise ConfigurationError(
                f"Invalid JSON in GOOGLE_OAUTH environment variable: {e}"
            ) from e

        web = oauth_info.get("web", {}) if isinstance(oauth_info, dict) else {}
        client_id = client_id or web.get("client_id", "")
        client_secret = client_secret or web.get("client_secret", "")

    for name, value in (
        ("GOOGLE_OAUTH_CLIENT_ID", client_id),
        ("GOOGLE_OAUTH_CLIENT_SECRET", client_secret),
    ):
        if not value or not isinstance(value, str):
            logger.error(f"Missing required environment variable: {name}")
            raise ConfigurationError(
                f"Missing required environment variable: {name} (or GOOGLE_OAUTH)"
            )

    if not client_id.endswith(".googleusercontent.com"):
        logger.warning(
            "OAuth client_id does not appear to be a valid Google client ID: %s",
            client_id,
        )
    return client_id, client_secret


def load_config_from_env() -> RelayConfig:
    """Build a RelayConfig from the environment.

    Raises:
        ConfigurationError: If a required value is missing or malformed.
    """
    client_id, client_secret = _google_credentials_from_env()
    check_req_env_vars(["COOKIE_ENCRYPTION_KEY"])

    try:
        upstream_timeout = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid UPSTREAM_TIMEOUT_SECONDS: {e}") from e

    config = RelayConfig(
        google_client_id=client_id,
        google_client_secret=client_secret,
        cookie_encryption_key=os.environ["COOKIE_ENCRYPTION_KEY"],
        force_https_domains=[
            d.strip() for d in os.getenv("FORCE_HTTPS_DOMAINS", "").split(",") if d.strip()
        ],
        clients_config_path=os.getenv("MCP_OAUTH_CLIENTS_PATH") or None,
        server_name=os.getenv("MCP_SERVER_NAME", DEFAULT_SERVER_NAME),
        server_logo=os.getenv("MCP_SERVER_LOGO", DEFAULT_SERVER_LOGO) or None,
        server_description=os.getenv("MCP_SERVER_DESCRIPTION", DEFAULT_SERVER_DESCRIPTION)
        or None,
        upstream_timeout=upstream_timeout,
    )

    logger.info(f"Loaded Google OAuth configuration for client: {client_id}")
    return config
