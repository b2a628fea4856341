"""Unified helpers for GUS operations.

This module wraps the boilerplate needed to get an authenticated
GusOperations instance from application settings.

Usage:
    from .helpers import get_operations

    async with get_operations(settings) as ops:
        items = await ops.query_work_items(soql)
"""

from __future__ import annotations

import webbrowser
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from .config import Settings
from .gus.client import GusClient
from .gus.operations import GusOperations
from .logging_config import get_logger
from .oauth.client import get_authenticated_client
from .oauth.flow import BrowserOpener, login_via_browser
from .oauth.models import Credential
from .oauth.storage import CredentialStore, create_credential_store

logger = get_logger("helpers")


async def login(
    settings: Settings,
    opener: BrowserOpener = webbrowser.open,
    store: CredentialStore | None = None,
) -> Credential:
    """Run a browser login regardless of the cache and store the result.

    Args:
        settings: Application settings
        opener: Opens the authorization URL
        store: Credential cache (default: the one named by settings)

    Returns:
        Credential: The newly cached credential
    """
    store = store or create_credential_store(settings)
    token = await login_via_browser(
        opener,
        settings.gus,
        port=settings.callback_port,
        timeout=settings.login_timeout,
    )
    credential = Credential(
        access_token=token.access_token,
        instance_url=token.instance_url,
        collected_at=datetime.now(timezone.utc),
    )
    await store.set(credential)
    logger.info("Logged in to %s", credential.instance_url)
    return credential


@asynccontextmanager
async def get_operations(
    settings: Settings,
    opener: BrowserOpener = webbrowser.open,
    store: CredentialStore | None = None,
) -> AsyncIterator[GusOperations]:
    """Yield an authenticated GusOperations instance.

    Uses the cached credential when it is fresh and logs in through the
    browser otherwise. The HTTP client is closed on exit.

    Raises:
        LoginError: If a login was needed and failed
    """
    auth = await get_authenticated_client(
        opener,
        settings.gus,
        store=store or create_credential_store(settings),
        max_age_hours=settings.token_max_age_hours,
        port=settings.callback_port,
        timeout=settings.login_timeout,
    )
    logger.debug("Opening GUS client for %s", auth.instance_url)
    async with GusClient(
        auth.access_token, auth.instance_url, api_version=settings.gus.api_version
    ) as client:
        yield GusOperations(client, settings.gus)
