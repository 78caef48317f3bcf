"""End-to-end authorization flows through the relay."""

from urllib.parse import parse_qs, urlparse

from mcp_google_oauth.consent import COOKIE_NAME
from mcp_google_oauth.models import SessionProps
from mcp_google_oauth.state_codec import decode_state, encode_state

from ..conftest import CLIENT_ID, CLIENT_REDIRECT_URI


def _location_query(response) -> dict[str, list[str]]:
    return parse_qs(urlparse(response.headers["location"]).query)


def _hidden_field(html: str, name: str) -> str:
    marker = f'name="{name}" value="'
    start = html.index(marker) + len(marker)
    return html[start : html.index('"', start)]


def _dialog_form(dialog, **fields) -> tuple[dict[str, str], dict[str, str]]:
    """Form data and Cookie header a browser would submit from ``dialog``."""
    data = {"csrf_token": _hidden_field(dialog.text, "csrf_token"), **fields}
    headers = {"Cookie": dialog.headers["set-cookie"].split(";", 1)[0]}
    return data, headers


class TestRelayFlow:
    """Full round trips: authorize, approve, upstream callback, completion."""

    def test_first_time_user_approves_and_is_remembered(self, client, auth_request):
        # First visit: no cookie, dialog rendered
        dialog = client.get(
            "/authorize",
            params={
                "response_type": "code",
                "client_id": CLIENT_ID,
                "redirect_uri": CLIENT_REDIRECT_URI,
                "scope": "mcp:tools mcp:read",
                "state": "client-state-xyz",
                "code_challenge": auth_request.code_challenge,
                "code_challenge_method": "S256",
            },
            follow_redirects=False,
        )
        assert dialog.status_code == 200
        assert "Claude Test Client" in dialog.text

        # Submit with "remember" checked
        data, headers = _dialog_form(dialog, state=encode_state(auth_request), remember="true")
        approval = client.post("/authorize", data=data, headers=headers, follow_redirects=False)
        assert approval.status_code == 302

        location = urlparse(approval.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == (
            "https://accounts.google.com/o/oauth2/v2/auth"
        )
        query = _location_query(approval)
        assert query["redirect_uri"] == ["http://testserver/callback"]
        assert decode_state(query["state"][0]) == auth_request

        set_cookie = approval.headers["set-cookie"]
        assert set_cookie.startswith(f"{COOKIE_NAME}=")
        assert "HttpOnly" in set_cookie
        assert "Secure" in set_cookie

        # Second visit with the cookie: straight to Google, no dialog
        repeat = client.get(
            "/authorize",
            params={"client_id": CLIENT_ID, "state": "client-state-xyz"},
            headers={"Cookie": set_cookie.split(";", 1)[0]},
            follow_redirects=False,
        )
        assert repeat.status_code == 302
        assert repeat.headers["location"].startswith("https://accounts.google.com/")
        assert "set-cookie" not in repeat.headers
        assert decode_state(_location_query(repeat)["state"][0]).client_id == CLIENT_ID

    def test_dialog_state_is_what_gets_posted(self, client, auth_request):
        dialog = client.get(
            "/authorize",
            params={"client_id": CLIENT_ID, "state": "client-state-xyz"},
        )
        data, headers = _dialog_form(dialog, state=_hidden_field(dialog.text, "state"))

        approval = client.post("/authorize", data=data, headers=headers, follow_redirects=False)
        relayed = decode_state(_location_query(approval)["state"][0])
        assert relayed.client_id == CLIENT_ID
        assert relayed.state == "client-state-xyz"
        assert relayed.redirect_uri == CLIENT_REDIRECT_URI

    def test_callback_completes_authorization(self, client, fake_google, provider, auth_request):
        response = client.get(
            "/callback",
            params={"state": encode_state(auth_request), "code": "google-code"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == CLIENT_REDIRECT_URI
        query = _location_query(response)
        assert query["state"] == [auth_request.state]

        grant = provider.grants[query["code"][0]]
        assert grant.user_id == "u1"
        assert grant.client_id == auth_request.client_id
        assert grant.scope == auth_request.scope
        assert grant.metadata == {"label": "Jane"}
        assert grant.props == SessionProps(
            sub="u1", name="Jane", email="jane@x.com", access_token="google-access-token"
        )

        token_request = fake_google.token_requests()[0]
        form = parse_qs(token_request.content.decode())
        assert form["code"] == ["google-code"]
        assert form["grant_type"] == ["authorization_code"]
        assert form["redirect_uri"] == ["http://testserver/callback"]

        userinfo_request = fake_google.requests[1]
        assert userinfo_request.headers["authorization"] == "Bearer google-access-token"

    def test_callback_with_bad_state_never_contacts_google(self, client, fake_google):
        response = client.get(
            "/callback",
            params={"state": "this-is-not-valid-state", "code": "google-code"},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert response.text == "Invalid state"
        assert fake_google.requests == []
