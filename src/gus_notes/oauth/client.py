"""Authenticated client facade.

Decides between the cached credential and a fresh browser login:

- a cached credential younger than ``max_age_hours`` is returned verbatim,
  with no network call;
- anything else (no store, empty store, stale credential) runs
  :class:`~gus_notes.oauth.flow.BrowserLoginFlow` and writes the new
  credential back to the store.

Staleness is purely age-based; there is no refresh-token or forced-refresh
path.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from ..config import CALLBACK_TIMEOUT_SECONDS, DEFAULT_TOKEN_MAX_AGE_HOURS, GusConfig
from ..logging_config import get_logger
from .flow import BrowserLoginFlow, BrowserOpener
from .models import AuthenticatedClient, Credential
from .storage import CredentialStore

logger = get_logger("oauth.client")


class Clock(Protocol):
    """Callable returning seconds since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Default clock delegating to ``time.time()``."""
    return time.time()


def is_credential_fresh(
    credential: Credential,
    max_age_hours: float = DEFAULT_TOKEN_MAX_AGE_HOURS,
    clock: Clock = default_clock,
) -> bool:
    """Return True if ``credential`` is younger than ``max_age_hours``."""
    age_seconds = clock() - credential.collected_at.timestamp()
    return age_seconds < max_age_hours * 3600


async def get_authenticated_client(
    opener: BrowserOpener,
    config: GusConfig | dict[str, Any] | None = None,
    *,
    store: CredentialStore | None = None,
    max_age_hours: float = DEFAULT_TOKEN_MAX_AGE_HOURS,
    port: int | None = None,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = default_clock,
    timeout: float = CALLBACK_TIMEOUT_SECONDS,
) -> AuthenticatedClient:
    """Return a usable access token, logging in through the browser if needed.

    Args:
        opener: Opens the authorization URL (only called on a cache miss)
        config: Connection config or partial overrides
        store: Credential cache; without one every call logs in
        max_age_hours: Maximum age of a cached credential
        port: Callback listener port
        http_client: Client used for the token exchange
        clock: Time source
        timeout: Seconds to wait for the login callback

    Returns:
        AuthenticatedClient: Access token and instance URL

    Raises:
        LoginError: If a login was needed and failed
    """
    if store is not None:
        cached = await store.get()
        if cached is not None and is_credential_fresh(cached, max_age_hours, clock):
            logger.debug("Using cached credential for %s", cached.instance_url)
            return AuthenticatedClient(
                access_token=cached.access_token,
                instance_url=cached.instance_url,
            )
        if cached is not None:
            logger.info("Cached credential is older than %s hours; logging in again", max_age_hours)

    flow = BrowserLoginFlow(
        opener, config, port=port, http_client=http_client, timeout=timeout
    )
    token = await flow.run()

    credential = Credential(
        access_token=token.access_token,
        instance_url=token.instance_url,
        collected_at=datetime.fromtimestamp(clock(), tz=timezone.utc),
    )
    if store is not None:
        await store.set(credential)

    return AuthenticatedClient(
        access_token=credential.access_token,
        instance_url=credential.instance_url,
    )
