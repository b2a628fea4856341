"""Exception types raised by gus-notes.

Messages are written to be shown to the user as-is. Login failures carry a
``reason`` code so callers and tests can tell them apart without parsing
messages.
"""

from __future__ import annotations

from collections.abc import Sequence


class GusNotesError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(GusNotesError):
    """Raised when settings are missing or invalid."""


# --------------------------------------------------------------------------- #
# Login flow                                                                  #
# --------------------------------------------------------------------------- #
class LoginError(GusNotesError):
    """Raised when the browser login flow terminates without a token."""

    reason: str = "login-error"


class ListenerBindError(LoginError):
    """The local callback listener could not bind its port."""

    reason = "bind-error"

    def __init__(self, port: int, cause: OSError) -> None:
        super().__init__(
            f"Could not start the login callback listener on port {port}: {cause}. "
            "Another login may already be in progress."
        )
        self.port = port


class LoginTimeoutError(LoginError):
    """No callback arrived before the watchdog fired."""

    reason = "timeout"

    def __init__(self) -> None:
        super().__init__("Login callback timed out. Please try again.")


class OAuthCallbackError(LoginError):
    """The authorization server redirected back with an ``error`` parameter."""

    reason = "oauth-error"

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(f"OAuth error: {description or error}")
        self.error = error
        self.description = description


class InvalidStateError(LoginError):
    """The ``state`` parameter did not match the one sent with the request."""

    reason = "invalid-state"

    def __init__(self) -> None:
        super().__init__("Invalid state parameter")


class MissingCodeError(LoginError):
    """The callback carried neither an error nor an authorization code."""

    reason = "no-code"

    def __init__(self) -> None:
        super().__init__("No authorization code received")


class TokenExchangeError(LoginError):
    """The token endpoint rejected the code or could not be reached."""

    reason = "token-exchange-error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(f"Token exchange failed: {message}")
        self.status_code = status_code


# --------------------------------------------------------------------------- #
# Remote API                                                                  #
# --------------------------------------------------------------------------- #
class GusApiError(GusNotesError):
    """A query, search, identity or create call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# --------------------------------------------------------------------------- #
# Name resolution                                                             #
# --------------------------------------------------------------------------- #
class ResolutionError(GusNotesError):
    """A name could not be resolved to exactly one candidate."""

    def __init__(self, message: str, query: str, candidates: Sequence[str]) -> None:
        super().__init__(message)
        self.query = query
        self.candidates = list(candidates)


class NameNotFoundError(ResolutionError):
    """No candidate matched; ``candidates`` holds the full candidate list."""


class AmbiguousNameError(ResolutionError):
    """Several candidates matched; ``candidates`` holds only the matches."""


class SourceParseError(GusNotesError):
    """A task source string is not one of the supported forms."""
