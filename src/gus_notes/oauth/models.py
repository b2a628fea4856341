"""Typed records exchanged by the login flow, the facade and the cache."""

from __future__ import annotations

from datetime import datetime

import msgspec


class TokenResponse(msgspec.Struct, kw_only=True):
    """Payload returned by ``/services/oauth2/token``."""

    access_token: str
    instance_url: str
    token_type: str | None = None
    refresh_token: str | None = None


class Credential(msgspec.Struct, frozen=True, kw_only=True, rename="camel"):
    """Cached access token with the moment it was obtained.

    Serialised with camelCase keys (``accessToken``, ``instanceUrl``,
    ``collectedAt``) so it can sit inside a larger settings blob.
    """

    access_token: str
    instance_url: str
    collected_at: datetime


class AuthenticatedClient(msgspec.Struct, frozen=True, kw_only=True):
    """What callers need to talk to the API: a token and its instance."""

    access_token: str
    instance_url: str
