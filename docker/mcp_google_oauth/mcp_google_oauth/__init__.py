"""OAuth 2.0 authorization-code relay between MCP clients and Google."""

from .server import create_app

__all__ = ["create_app"]
