"""Helpers for building Starlette requests without a running server."""

from urllib.parse import urlencode

from starlette.requests import Request

from mcp_google_oauth.consent import issue_csrf_token


def make_request(
    path: str = "/authorize",
    method: str = "GET",
    cookie: str | None = None,
    form: dict[str, str] | None = None,
) -> Request:
    """Build a request, optionally carrying a cookie header and a urlencoded form body."""
    headers = [(b"host", b"testserver")]
    if cookie is not None:
        headers.append((b"cookie", cookie.encode()))

    body = b""
    if form is not None:
        body = urlencode(form).encode()
        headers.append((b"content-type", b"application/x-www-form-urlencoded"))
        headers.append((b"content-length", str(len(body)).encode()))

    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("testserver", 80),
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": headers,
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def cookie_pair(set_cookie_header: str) -> str:
    """Reduce a Set-Cookie header to the ``name=value`` pair a browser sends back."""
    return set_cookie_header.split(";", 1)[0]


def csrf_fields(secret: str) -> tuple[str, str]:
    """Issue a CSRF pair as a browser holds it: ``(cookie name=value, form token)``."""
    header, form_token = issue_csrf_token(secret)
    return cookie_pair(header), form_token
