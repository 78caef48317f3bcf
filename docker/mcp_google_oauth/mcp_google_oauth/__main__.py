"""Main entry point for the MCP Google OAuth relay."""

import argparse
import logging
import os
import sys
from importlib.metadata import version

import uvicorn

from .config import load_config_from_env
from .errors import ConfigurationError
from .provider import InMemoryAuthorizationProvider, load_clients_from_file
from .server import create_app
from .utils.logger import logger, set_debug_mode


def _setup_argument_parser() -> argparse.ArgumentParser:
    """Set up and return the argument parser for the OAuth relay."""
    try:
        package_version = version("mcp-google-oauth")
    except Exception:
        package_version = "0.1.0"

    parser = argparse.ArgumentParser(
        description="OAuth 2.0 relay letting MCP clients authorize through Google",
        epilog=(
            "Examples:\n"
            "  mcp-google-oauth --port 8080 --host 0.0.0.0\n"
            "  mcp-google-oauth --debug --clients-config-path clients.json\n"
            "  GOOGLE_OAUTH_CLIENT_ID=... GOOGLE_OAUTH_CLIENT_SECRET=... \\\n"
            "  COOKIE_ENCRYPTION_KEY=... mcp-google-oauth --port 8443\n"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {package_version}",
        help="Show the version and exit",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8001,
        help="Port to run the OAuth relay on. Default is 8001",
    )

    parser.add_argument(
        "--host",
        default="0.0.0.0",  # nosec B104 - Required for containerized service
        help="Host to run the OAuth relay on. Default is 0.0.0.0",
    )

    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging level. Default is info",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (equivalent to --log-level debug)",
    )

    parser.add_argument(
        "--clients-config-path",
        default=None,
        help="Path to the downstream client registry JSON file. Default is from MCP_OAUTH_CLIENTS_PATH env var",
    )

    return parser


def main() -> None:
    """Main entry point for the OAuth relay."""
    parser = _setup_argument_parser()
    args = parser.parse_args()

    log_level = "debug" if args.debug else args.log_level

    host = os.getenv("HOST", args.host)
    port = int(os.getenv("PORT", args.port))
    log_level = os.getenv("LOG_LEVEL", log_level).lower()
    set_debug_mode(log_level == "debug")

    try:
        config = load_config_from_env()
    except ConfigurationError as e:
        logger.error(f"Failed to initialize OAuth configuration: {e}")
        logger.error(
            "Set GOOGLE_OAUTH_CLIENT_ID, GOOGLE_OAUTH_CLIENT_SECRET and COOKIE_ENCRYPTION_KEY"
        )
        sys.exit(1)

    clients_config_path = args.clients_config_path or config.clients_config_path
    provider = InMemoryAuthorizationProvider()
    if clients_config_path:
        try:
            for client in load_clients_from_file(clients_config_path):
                provider.register_client(client)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load downstream clients: {e}")
            sys.exit(1)
    else:
        logger.warning("No client registry configured - every authorization request will be rejected")

    # Keep request URLs carrying codes and tokens out of the logs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.info(f"Starting MCP Google OAuth relay on {host}:{port}")
    logger.info(f"Log level: {log_level}")

    uvicorn.run(
        create_app(config, provider=provider),
        host=host,
        port=port,
        log_level=log_level,
        access_log=log_level == "debug",
    )


if __name__ == "__main__":
    main()
