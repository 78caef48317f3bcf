"""Downstream authorization provider.

The relay only depends on the ``AuthorizationProvider`` protocol: parse an
inbound authorization request, look up the requesting client, and complete
an authorization by minting the downstream grant. ``InMemoryAuthorizationProvider``
is the implementation bundled for single-process deployments and tests.
"""

import json
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlencode, urlparse, urlunparse

from starlette.requests import Request

from .errors import AuthorizationRequestError, CompletionError
from .models import AuthorizationRequest, ClientMetadata, CompletionResult, SessionProps
from .utils.logger import logger

AUTHORIZATION_CODE_TTL = 600  # 10 minutes


class AuthorizationProvider(Protocol):
    """Interface of the component that owns downstream clients and grants."""

    async def parse_auth_request(self, request: Request) -> AuthorizationRequest:
        ...

    async def lookup_client(self, client_id: str) -> ClientMetadata | None:
        ...

    async def complete_authorization(
        self,
        *,
        request: AuthorizationRequest,
        user_id: str,
        metadata: dict[str, Any],
        scope: list[str],
        props: SessionProps,
    ) -> CompletionResult:
        ...


@dataclass
class Grant:
    """A downstream authorization code waiting to be redeemed."""

    code: str
    client_id: str
    user_id: str
    redirect_uri: str
    scope: list[str]
    metadata: dict[str, Any]
    props: SessionProps
    code_challenge: str | None
    code_challenge_method: str | None
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.time() > self.expires_at


class InMemoryAuthorizationProvider:
    """Client registry and grant store kept in process memory."""

    def __init__(self, clients: list[ClientMetadata] | None = None) -> None:
        self.clients: dict[str, ClientMetadata] = {}
        self.grants: dict[str, Grant] = {}
        for client in clients or []:
            self.register_client(client)

    def register_client(self, client: ClientMetadata) -> None:
        self.clients[client.client_id] = client
        logger.info(
            "Registered downstream client %s (%s)",
            client.client_id,
            client.client_name or "unnamed",
        )

    async def parse_auth_request(self, request: Request) -> AuthorizationRequest:
        """Validate the query of an authorization request against the registry.

        An absent ``client_id`` is returned as an empty identifier for the
        caller to reject.

        Raises:
            AuthorizationRequestError: For an unsupported response type, an
                unknown client or an unregistered redirect URI.
        """
        params = request.query_params

        response_type = params.get("response_type", "code")
        if response_type != "code":
            raise AuthorizationRequestError(f"Unsupported response_type: {response_type}")

        client_id = params.get("client_id", "")
        redirect_uri = params.get("redirect_uri", "")
        if client_id:
            client = self.clients.get(client_id)
            if client is None:
                logger.warning("Authorization request for unknown client %s", client_id)
                raise AuthorizationRequestError("Invalid client")
            redirect_uri = self._resolve_redirect_uri(client, redirect_uri)

        return AuthorizationRequest(
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=params.get("scope", "").split(),
            state=params.get("state", ""),
            response_type=response_type,
            code_challenge=params.get("code_challenge"),
            code_challenge_method=params.get("code_challenge_method"),
        )

    @staticmethod
    def _resolve_redirect_uri(client: ClientMetadata, redirect_uri: str) -> str:
        if not redirect_uri:
            if len(client.redirect_uris) == 1:
                return client.redirect_uris[0]
            raise AuthorizationRequestError("Missing redirect_uri")
        if redirect_uri not in client.redirect_uris:
            logger.warning(
                "Redirect URI %s is not registered for client %s",
                redirect_uri,
                client.client_id,
            )
            raise AuthorizationRequestError("Invalid redirect URI")
        return redirect_uri

    async def lookup_client(self, client_id: str) -> ClientMetadata | None:
        return self.clients.get(client_id)

    async def complete_authorization(
        self,
        *,
        request: AuthorizationRequest,
        user_id: str,
        metadata: dict[str, Any],
        scope: list[str],
        props: SessionProps,
    ) -> CompletionResult:
        """Mint a downstream authorization code and return the client redirect.

        Raises:
            CompletionError: If the client or its redirect URI is no longer registered.
        """
        client = self.clients.get(request.client_id)
        if client is None:
            raise CompletionError("Client is no longer registered")
        if request.redirect_uri not in client.redirect_uris:
            raise CompletionError("Redirect URI is no longer registered")

        self._evict_expired_grants()

        code = secrets.token_urlsafe(32)
        self.grants[code] = Grant(
            code=code,
            client_id=request.client_id,
            user_id=user_id,
            redirect_uri=request.redirect_uri,
            scope=list(scope),
            metadata=dict(metadata),
            props=props,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
            expires_at=time.time() + AUTHORIZATION_CODE_TTL,
        )
        logger.info(
            "Issued downstream grant for user %s to client %s", user_id, request.client_id
        )

        params = {"code": code}
        if request.state:
            params["state"] = request.state

        parsed = urlparse(request.redirect_uri)
        query = f"{parsed.query}&{urlencode(params)}" if parsed.query else urlencode(params)
        return CompletionResult(redirect_to=urlunparse(parsed._replace(query=query)))

    def _evict_expired_grants(self) -> None:
        expired = [code for code, grant in self.grants.items() if grant.is_expired]
        for code in expired:
            del self.grants[code]
        if expired:
            logger.debug("Evicted %d expired downstream grant(s)", len(expired))

    def pop_grant(self, code: str) -> Grant | None:
        """Remove and return an unexpired grant; codes are single use."""
        grant = self.grants.pop(code, None)
        if grant is None or grant.is_expired:
            return None
        return grant


def load_clients_from_file(config_file_path: str) -> list[ClientMetadata]:
    """Load downstream client registrations from a JSON file.

    Expected format: ``{"clients": {"<client_id>": {"client_name": ..., "redirect_uris": [...]}}}``

    Raises:
        FileNotFoundError: If the config file is not found.
        json.JSONDecodeError: If the config file contains invalid JSON.
        ValueError: If the config file format is invalid.
    """
    logger.info("Loading downstream clients from: %s", config_file_path)

    try:
        with Path(config_file_path).open() as f:
            config_data = json.load(f)
    except FileNotFoundError:
        logger.exception("Client configuration file not found: %s", config_file_path)
        raise
    except json.JSONDecodeError:
        logger.exception(
            "Error decoding JSON from client configuration file: %s", config_file_path
        )
        raise

    if not isinstance(config_data, dict) or not isinstance(config_data.get("clients"), dict):
        msg = f"Invalid client config file format in {config_file_path}. Missing 'clients' key."
        logger.error(msg)
        raise ValueError(msg)

    clients = []
    for client_id, entry in config_data["clients"].items():
        if not isinstance(entry, dict):
            logger.warning(
                "Skipping invalid client config for '%s' in %s. Entry is not a dictionary.",
                client_id,
                config_file_path,
            )
            continue

        redirect_uris = entry.get("redirect_uris", [])
        if not isinstance(redirect_uris, list) or not redirect_uris:
            logger.warning(
                "Skipping client '%s' in %s. 'redirect_uris' must be a non-empty list.",
                client_id,
                config_file_path,
            )
            continue

        clients.append(
            ClientMetadata(
                client_id=client_id,
                client_name=entry.get("client_name"),
                redirect_uris=[str(uri) for uri in redirect_uris],
                logo_uri=entry.get("logo_uri"),
                client_uri=entry.get("client_uri"),
                policy_uri=entry.get("policy_uri"),
                tos_uri=entry.get("tos_uri"),
                contacts=list(entry.get("contacts", [])),
            )
        )

    logger.info("Loaded %d downstream client(s)", len(clients))
    return clients
