"""Signed cookies bound to the approval dialog.

Consent cookie value format:
``{hex_hmac_sha256}.{base64url(json client ids, oldest approval first)}``

The cookie is only trusted after its signature verifies against the current
secret. Rotating the secret therefore invalidates every outstanding cookie,
and any verification failure reads as "not approved". Only the most recent
``MAX_APPROVED_CLIENTS`` approvals are kept so the value stays well under
browser cookie size limits.

The CSRF cookie carries a random token issued with each rendered dialog; the
form echoes an HMAC of it, so only a page served by this relay can post an
approval.
"""

import base64
import binascii
import hashlib
import hmac
import json
import secrets
from collections.abc import Iterable, Mapping

from starlette.requests import HTTPConnection

from .utils.logger import logger

__all__ = [
    "COOKIE_NAME",
    "COOKIE_MAX_AGE",
    "CSRF_COOKIE_NAME",
    "CSRF_COOKIE_MAX_AGE",
    "MAX_APPROVED_CLIENTS",
    "build_approval_cookie",
    "get_approved_clients",
    "is_client_approved",
    "issue_csrf_token",
    "verify_csrf_token",
]

COOKIE_NAME = "mcp-approved-clients"
COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # 1 year
MAX_APPROVED_CLIENTS = 50

CSRF_COOKIE_NAME = "mcp-approval-csrf"
CSRF_COOKIE_MAX_AGE = 10 * 60  # 10 minutes

_COOKIE_ATTRIBUTES = "HttpOnly; Secure; Path=/; SameSite=Lax"


def get_approved_clients(cookies: Mapping[str, str], secret: str) -> tuple[str, ...]:
    """Return the verified approved client ids, oldest first, empty if none can be trusted."""
    value = cookies.get(COOKIE_NAME)
    if not value:
        logger.debug("No consent cookie present")
        return ()

    clients = _verify(value, secret)
    if clients is None:
        logger.warning("Ignoring consent cookie that failed verification")
        return ()
    return clients


def is_client_approved(conn: HTTPConnection, client_id: str, secret: str) -> bool:
    """Check whether the browser behind ``conn`` already approved ``client_id``."""
    if not client_id:
        return False
    return client_id in get_approved_clients(conn.cookies, secret)


def build_approval_cookie(
    previous_approvals: Iterable[str], client_id: str, secret: str
) -> str:
    """Add ``client_id`` to the approved list and return a signed Set-Cookie value.

    ``client_id`` becomes the most recent entry; the oldest approvals are
    dropped once ``MAX_APPROVED_CLIENTS`` is exceeded.
    """
    clients = [c for c in dict.fromkeys(previous_approvals) if c != client_id]
    clients.append(client_id)
    clients = clients[-MAX_APPROVED_CLIENTS:]

    payload = _encode_payload(clients)
    signature = _sign(secret, payload)
    return (
        f"{COOKIE_NAME}={signature}.{payload}; "
        f"{_COOKIE_ATTRIBUTES}; Max-Age={COOKIE_MAX_AGE}"
    )


def issue_csrf_token(secret: str) -> tuple[str, str]:
    """Return ``(set_cookie_header, form_token)`` for a freshly rendered dialog."""
    token = secrets.token_urlsafe(32)
    header = f"{CSRF_COOKIE_NAME}={token}; {_COOKIE_ATTRIBUTES}; Max-Age={CSRF_COOKIE_MAX_AGE}"
    return header, _sign(secret, f"csrf:{token}")


def verify_csrf_token(cookies: Mapping[str, str], form_token: str | None, secret: str) -> bool:
    """Check that ``form_token`` was issued alongside the browser's CSRF cookie."""
    token = cookies.get(CSRF_COOKIE_NAME)
    if not token or not form_token:
        return False
    expected = _sign(secret, f"csrf:{token}")
    return hmac.compare_digest(form_token.encode("ascii", "replace"), expected.encode())


def _verify(value: str, secret: str) -> tuple[str, ...] | None:
    signature, sep, payload = value.partition(".")
    if not sep or not signature or not payload:
        return None

    expected = _sign(secret, payload)
    if not hmac.compare_digest(signature.encode("ascii", "replace"), expected.encode()):
        return None

    try:
        padded = payload + "=" * (-len(payload) % 4)
        clients = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError):
        return None

    if not isinstance(clients, list) or not all(isinstance(c, str) for c in clients):
        return None
    return tuple(clients)


def _encode_payload(clients: list[str]) -> str:
    raw = json.dumps(clients, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _sign(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()
