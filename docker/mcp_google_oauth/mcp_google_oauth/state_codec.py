"""Relay state encoding.

The downstream authorization request travels through the upstream
provider's ``state`` parameter as base64url-encoded JSON, so no session
has to be kept on the server between ``/authorize`` and ``/callback``.
The value is not signed: it holds no secret and only has to parse.
"""

import base64
import binascii
import json

from .errors import MalformedStateError, MissingClientIdError
from .models import AuthorizationRequest


def encode_state(auth_request: AuthorizationRequest) -> str:
    """Serialize an authorization request into an opaque state token."""
    payload = json.dumps(
        auth_request.to_dict(), sort_keys=True, separators=(",", ":")
    ).encode("utf-8")
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")


def decode_state(state: str) -> AuthorizationRequest:
    """Recover the authorization request carried in ``state``.

    Raises:
        MalformedStateError: If ``state`` is not base64-encoded JSON of an object.
        MissingClientIdError: If the decoded object names no client.
    """
    if not state:
        raise MalformedStateError("Invalid state")

    padded = state + "=" * (-len(state) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise MalformedStateError("Invalid state") from e

    if not isinstance(data, dict):
        raise MalformedStateError("Invalid state")

    if not data.get("client_id"):
        raise MissingClientIdError("Invalid state")

    try:
        return AuthorizationRequest.from_dict(data)
    except TypeError as e:
        raise MalformedStateError("Invalid state") from e
