"""Tests for the authenticated client facade."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from gus_notes.oauth.client import get_authenticated_client, is_credential_fresh
from gus_notes.oauth.models import Credential, TokenResponse
from gus_notes.oauth.storage import MemoryCredentialStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc).timestamp()


def clock() -> float:
    return NOW


def credential(hours_old: float, token: str = "cached-token") -> Credential:
    return Credential(
        access_token=token,
        instance_url="https://gus.my.salesforce.com",
        collected_at=datetime.fromtimestamp(NOW - hours_old * 3600, tz=timezone.utc),
    )


class TestIsCredentialFresh:
    """Tests for the freshness check."""

    def test_fresh(self):
        assert is_credential_fresh(credential(1), 8, clock)

    def test_stale(self):
        assert not is_credential_fresh(credential(10), 8, clock)

    def test_exactly_max_age_is_stale(self):
        assert not is_credential_fresh(credential(8), 8, clock)


class TestGetAuthenticatedClient:
    """Tests for cache-or-login."""

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_login(self):
        """Test a fresh credential is returned without opening the browser."""
        store = MemoryCredentialStore(credential(1))
        opener = AsyncMock()

        with patch("gus_notes.oauth.client.BrowserLoginFlow") as flow_cls:
            client = await get_authenticated_client(opener, store=store, clock=clock)

        assert client.access_token == "cached-token"
        assert client.instance_url == "https://gus.my.salesforce.com"
        opener.assert_not_called()
        flow_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_cache_logs_in_and_stores(self):
        """Test a 10 hour old credential triggers a login and is replaced."""
        store = MemoryCredentialStore(credential(10))
        opener = AsyncMock()
        token = TokenResponse(
            access_token="fresh-token", instance_url="https://gus.my.salesforce.com"
        )

        with patch("gus_notes.oauth.client.BrowserLoginFlow") as flow_cls:
            flow_cls.return_value.run = AsyncMock(return_value=token)
            client = await get_authenticated_client(opener, store=store, clock=clock)

        assert client.access_token == "fresh-token"
        flow_cls.assert_called_once()
        stored = await store.get()
        assert stored.access_token == "fresh-token"
        assert stored.collected_at.timestamp() == NOW

    @pytest.mark.asyncio
    async def test_empty_store_logs_in(self):
        store = MemoryCredentialStore()
        token = TokenResponse(access_token="t", instance_url="https://i")

        with patch("gus_notes.oauth.client.BrowserLoginFlow") as flow_cls:
            flow_cls.return_value.run = AsyncMock(return_value=token)
            client = await get_authenticated_client(AsyncMock(), store=store, clock=clock)

        assert client.access_token == "t"
        assert (await store.get()).instance_url == "https://i"

    @pytest.mark.asyncio
    async def test_no_store_always_logs_in(self):
        token = TokenResponse(access_token="t", instance_url="https://i")

        with patch("gus_notes.oauth.client.BrowserLoginFlow") as flow_cls:
            flow_cls.return_value.run = AsyncMock(return_value=token)
            await get_authenticated_client(AsyncMock(), clock=clock)
            await get_authenticated_client(AsyncMock(), clock=clock)

        assert flow_cls.call_count == 2

    @pytest.mark.asyncio
    async def test_login_failure_leaves_store_untouched(self):
        from gus_notes.errors import LoginTimeoutError

        old = credential(10)
        store = MemoryCredentialStore(old)

        with patch("gus_notes.oauth.client.BrowserLoginFlow") as flow_cls:
            flow_cls.return_value.run = AsyncMock(side_effect=LoginTimeoutError())
            with pytest.raises(LoginTimeoutError):
                await get_authenticated_client(AsyncMock(), store=store, clock=clock)

        assert await store.get() == old
