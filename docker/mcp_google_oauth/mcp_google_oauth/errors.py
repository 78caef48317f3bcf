"""Error types raised along the authorization relay.

Every error carries the HTTP status it is rendered with. The server renders
them as plain text; none of them is retried.
"""


class OAuthRelayError(Exception):
    """Base class for failures that terminate an authorization request."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ValueError):
    """Required service configuration is missing or invalid."""


class BadRequestError(OAuthRelayError):
    """The incoming request is incomplete or malformed."""

    status_code = 400


class StateDecodeError(BadRequestError):
    """The relay state could not be turned back into an authorization request."""


class MalformedStateError(StateDecodeError):
    """The relay state is not base64-encoded JSON of the expected shape."""


class MissingClientIdError(StateDecodeError):
    """The relay state decoded but names no client."""


class InvalidSubmissionError(BadRequestError):
    """The approval form was posted without a usable state field."""


class AuthorizationRequestError(BadRequestError):
    """The downstream provider rejected the authorization request."""


class IdentityFetchError(OAuthRelayError):
    """The upstream user-info endpoint did not return the user's profile."""


class CompletionError(OAuthRelayError):
    """The downstream provider refused to complete the authorization."""
