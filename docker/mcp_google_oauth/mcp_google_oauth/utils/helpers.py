"""Helper functions for the OAuth relay."""

import os
from collections.abc import Iterable
from urllib.parse import urlparse

from starlette.requests import HTTPConnection

from ..errors import ConfigurationError
from .logger import logger


def check_req_env_vars(required_env_vars: Iterable[str]) -> None:
    """Check that all required environment variables are set and non-empty."""
    for var in required_env_vars:
        if not os.getenv(var):
            logger.error(f"Missing required environment variable: {var}")
            raise ConfigurationError(f"Missing required environment variable: {var}")


def get_request_scheme(conn: HTTPConnection, force_https_domains: Iterable[str]) -> str:
    """
    Determine the scheme to use when building URLs back to this server.

    Behind a load balancer the request arrives over plain http, so hosts
    listed in ``force_https_domains`` are always answered with https.
    """
    hostname = urlparse(str(conn.url)).hostname
    if not hostname:
        return str(conn.url.scheme)

    should_force_https = any(
        domain.strip() and hostname.endswith(domain.strip())
        for domain in force_https_domains
    )
    return "https" if should_force_https else str(conn.url.scheme)


def get_base_url(conn: HTTPConnection, force_https_domains: Iterable[str]) -> str:
    """Return ``scheme://host[:port]`` of the server handling ``conn``."""
    scheme = get_request_scheme(conn, force_https_domains)
    return f"{scheme}://{conn.url.netloc}"


def mask_params(params: dict[str, str], sensitive: tuple[str, ...]) -> dict[str, str]:
    """Return a copy of ``params`` with the sensitive values replaced by ``***``."""
    return {k: "***" if k in sensitive else v for k, v in params.items()}
