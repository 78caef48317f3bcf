"""Data types passed between the relay components."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class AuthorizationRequest:
    """A downstream client's OAuth 2.0 authorization request.

    Carried opaquely through the upstream round trip as relay state. Its
    contents are only shape-checked, never trusted as an authorization signal.
    """

    client_id: str
    redirect_uri: str = ""
    scope: list[str] = field(default_factory=list)
    state: str = ""
    response_type: str = "code"
    code_challenge: str | None = None
    code_challenge_method: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthorizationRequest":
        """Build a request from a decoded mapping, ignoring unknown keys.

        Raises:
            TypeError: If a field has the wrong type.
        """
        scope = data.get("scope", [])
        if not isinstance(scope, list) or not all(isinstance(s, str) for s in scope):
            raise TypeError("scope must be a list of strings")

        for name in ("client_id", "redirect_uri", "state", "response_type"):
            if not isinstance(data.get(name, ""), str):
                raise TypeError(f"{name} must be a string")

        for name in ("code_challenge", "code_challenge_method"):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"{name} must be a string")

        return cls(
            client_id=data.get("client_id", ""),
            redirect_uri=data.get("redirect_uri", ""),
            scope=list(scope),
            state=data.get("state", ""),
            response_type=data.get("response_type", "code"),
            code_challenge=data.get("code_challenge"),
            code_challenge_method=data.get("code_challenge_method"),
        )


@dataclass
class ClientMetadata:
    """Registered downstream client, as shown on the approval dialog."""

    client_id: str
    client_name: str | None = None
    redirect_uris: list[str] = field(default_factory=list)
    logo_uri: str | None = None
    client_uri: str | None = None
    policy_uri: str | None = None
    tos_uri: str | None = None
    contacts: list[str] = field(default_factory=list)


@dataclass
class ServerMetadata:
    """How this server introduces itself on the approval dialog."""

    name: str
    logo: str | None = None
    description: str | None = None


@dataclass
class GoogleUserInfo:
    """Profile claims returned by the upstream user-info endpoint."""

    sub: str
    name: str
    email: str
    picture: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    locale: str | None = None
    verified_email: bool | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "GoogleUserInfo":
        """Build user info from a user-info JSON body.

        Raises:
            KeyError: If ``sub`` is absent.
        """
        return cls(
            sub=data["sub"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            picture=data.get("picture"),
            given_name=data.get("given_name"),
            family_name=data.get("family_name"),
            locale=data.get("locale"),
            verified_email=data.get("verified_email", data.get("email_verified")),
        )


@dataclass(frozen=True)
class SessionProps:
    """Payload handed to resource-access code once authorization completes."""

    sub: str
    name: str
    email: str
    access_token: str

    @classmethod
    def from_user_info(cls, user: GoogleUserInfo, access_token: str) -> "SessionProps":
        return cls(
            sub=user.sub, name=user.name, email=user.email, access_token=access_token
        )


@dataclass(frozen=True)
class CompletionResult:
    """Where the browser goes once the downstream provider has minted its grant."""

    redirect_to: str
