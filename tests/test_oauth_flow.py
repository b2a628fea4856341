"""Tests for the browser PKCE login flow."""

import asyncio
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from gus_notes.errors import (
    InvalidStateError,
    ListenerBindError,
    LoginTimeoutError,
    MissingCodeError,
    OAuthCallbackError,
    TokenExchangeError,
)
from gus_notes.oauth.flow import (
    BrowserLoginFlow,
    CallbackListener,
    LoginState,
    build_auth_url,
    exchange_code_for_token,
)
from gus_notes.oauth.pkce import generate_code_challenge

HOST = "127.0.0.1"


def token_client(captured: list[httpx.Request] | None = None, status: int = 200, body=None):
    """httpx client whose token endpoint answers with a canned response."""
    if body is None:
        body = {
            "access_token": "00Dxx!token",
            "instance_url": "https://gus.my.salesforce.com",
            "token_type": "Bearer",
        }

    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def callback_opener(port: int, pages: list[str], **override):
    """Opener that plays the browser: follows the redirect back to the listener."""

    async def opener(auth_url: str) -> None:
        query = parse_qs(urlsplit(auth_url).query)
        params = {"code": "auth-code-123", "state": query["state"][0]}
        params.update(override)
        params = {k: v for k, v in params.items() if v is not None}
        async with httpx.AsyncClient(trust_env=False) as browser:
            response = await browser.get(
                f"http://{HOST}:{port}/OauthRedirect", params=params
            )
        pages.append(response.text)

    return opener


class TestBuildAuthUrl:
    """Tests for the authorization URL."""

    def test_default_config(self):
        """Test URL against the default instance."""
        url = build_auth_url("challenge-abc", "state-xyz")
        parts = urlsplit(url)
        query = parse_qs(parts.query)

        assert parts.scheme == "https"
        assert parts.netloc == "gus.my.salesforce.com"
        assert parts.path == "/services/oauth2/authorize"
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["PlatformCLI"]
        assert query["redirect_uri"] == ["http://localhost:1717/OauthRedirect"]
        assert query["code_challenge"] == ["challenge-abc"]
        assert query["code_challenge_method"] == ["S256"]
        assert query["scope"] == ["refresh_token api web"]
        assert query["state"] == ["state-xyz"]

    def test_instance_override(self):
        """Test scheme is added and trailing slash stripped."""
        url = build_auth_url("c", "s", {"instance": "example.my.salesforce.com/"})
        assert url.startswith("https://example.my.salesforce.com/services/oauth2/authorize?")


class TestExchangeCodeForToken:
    """Tests for the token exchange."""

    @pytest.mark.asyncio
    async def test_posts_form(self):
        """Test the form fields sent to the token endpoint."""
        captured: list[httpx.Request] = []
        async with token_client(captured) as client:
            token = await exchange_code_for_token("the-code", "the-verifier", http_client=client)

        assert token.access_token == "00Dxx!token"
        request = captured[0]
        assert str(request.url) == "https://gus.my.salesforce.com/services/oauth2/token"
        form = parse_qs(request.content.decode())
        assert form == {
            "grant_type": ["authorization_code"],
            "code": ["the-code"],
            "redirect_uri": ["http://localhost:1717/OauthRedirect"],
            "client_id": ["PlatformCLI"],
            "code_verifier": ["the-verifier"],
        }

    @pytest.mark.asyncio
    async def test_error_description(self):
        """Test non-2xx surfaces error_description."""
        body = {"error": "invalid_grant", "error_description": "expired authorization code"}
        async with token_client(status=400, body=body) as client:
            with pytest.raises(TokenExchangeError) as exc_info:
                await exchange_code_for_token("c", "v", http_client=client)

        assert str(exc_info.value) == "Token exchange failed: expired authorization code"
        assert exc_info.value.status_code == 400
        assert exc_info.value.reason == "token-exchange-error"

    @pytest.mark.asyncio
    async def test_missing_access_token(self):
        """Test a 2xx body without access_token is rejected."""
        async with token_client(body={"instance_url": "https://x"}) as client:
            with pytest.raises(TokenExchangeError):
                await exchange_code_for_token("c", "v", http_client=client)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test connection failures become TokenExchangeError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(TokenExchangeError) as exc_info:
                await exchange_code_for_token("c", "v", http_client=client)
        assert "connection refused" in str(exc_info.value)


class TestBrowserLoginFlow:
    """End-to-end tests against the real callback listener."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test a full login: callback, exchange, terminal state."""
        port = 31717
        pages: list[str] = []
        captured: list[httpx.Request] = []
        async with token_client(captured) as client:
            flow = BrowserLoginFlow(
                callback_opener(port, pages), port=port, http_client=client, host=HOST
            )
            token = await flow.run()

        assert token.access_token == "00Dxx!token"
        assert token.instance_url == "https://gus.my.salesforce.com"
        assert flow.state is LoginState.SUCCEEDED
        assert "Success" in pages[0]

        form = parse_qs(captured[0].content.decode())
        assert form["code"] == ["auth-code-123"]

    @pytest.mark.asyncio
    async def test_challenge_matches_exchanged_verifier(self):
        """Test the verifier sent to the token endpoint matches the URL's challenge."""
        port = 31718
        seen_urls: list[str] = []
        pages: list[str] = []
        inner = callback_opener(port, pages)

        async def opener(url: str) -> None:
            seen_urls.append(url)
            await inner(url)

        captured: list[httpx.Request] = []
        async with token_client(captured) as client:
            await BrowserLoginFlow(opener, port=port, http_client=client, host=HOST).run()

        challenge = parse_qs(urlsplit(seen_urls[0]).query)["code_challenge"][0]
        verifier = parse_qs(captured[0].content.decode())["code_verifier"][0]
        assert generate_code_challenge(verifier) == challenge

    @pytest.mark.asyncio
    async def test_oauth_error(self):
        """Test access_denied on the callback."""
        port = 31719
        pages: list[str] = []
        opener = callback_opener(
            port, pages, error="access_denied", error_description="User denied access"
        )
        flow = BrowserLoginFlow(opener, port=port, host=HOST)

        with pytest.raises(OAuthCallbackError) as exc_info:
            await flow.run()

        assert str(exc_info.value) == "OAuth error: User denied access"
        assert exc_info.value.reason == "oauth-error"
        assert flow.state is LoginState.FAILED
        assert "User denied access" in pages[0]

    @pytest.mark.asyncio
    async def test_invalid_state(self):
        """Test a callback carrying the wrong state."""
        port = 31720
        pages: list[str] = []
        flow = BrowserLoginFlow(
            callback_opener(port, pages, state="forged"), port=port, host=HOST
        )

        with pytest.raises(InvalidStateError) as exc_info:
            await flow.run()

        assert exc_info.value.reason == "invalid-state"
        assert "Invalid state parameter" in pages[0]

    @pytest.mark.asyncio
    async def test_missing_code(self):
        """Test a callback without a code."""
        port = 31721
        pages: list[str] = []
        flow = BrowserLoginFlow(callback_opener(port, pages, code=None), port=port, host=HOST)

        with pytest.raises(MissingCodeError) as exc_info:
            await flow.run()

        assert exc_info.value.reason == "no-code"

    @pytest.mark.asyncio
    async def test_other_paths_return_404(self):
        """Test stray requests do not affect the flow."""
        port = 31722
        pages: list[str] = []
        inner = callback_opener(port, pages)
        statuses: list[int] = []

        async def opener(url: str) -> None:
            async with httpx.AsyncClient(trust_env=False) as browser:
                response = await browser.get(f"http://{HOST}:{port}/favicon.ico")
            statuses.append(response.status_code)
            await inner(url)

        async with token_client() as client:
            flow = BrowserLoginFlow(opener, port=port, http_client=client, host=HOST)
            await flow.run()

        assert statuses == [404]
        assert flow.state is LoginState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_token_exchange_failure(self):
        """Test a rejected code fails the flow after the callback."""
        port = 31723
        pages: list[str] = []
        body = {"error": "invalid_grant", "error_description": "bad code"}
        async with token_client(status=400, body=body) as client:
            flow = BrowserLoginFlow(
                callback_opener(port, pages), port=port, http_client=client, host=HOST
            )
            with pytest.raises(TokenExchangeError):
                await flow.run()

        assert flow.state is LoginState.FAILED

    @pytest.mark.asyncio
    async def test_timeout_releases_port(self):
        """Test the watchdog fires and the port is free afterwards."""
        port = 31724
        flow = BrowserLoginFlow(lambda url: None, port=port, timeout=0.2, host=HOST)

        with pytest.raises(LoginTimeoutError) as exc_info:
            await flow.run()

        assert exc_info.value.reason == "timeout"
        assert str(exc_info.value) == "Login callback timed out. Please try again."
        assert flow.state is LoginState.FAILED

        listener = CallbackListener(port, "/OauthRedirect", "s", host=HOST)
        await listener.start()
        await listener.close()

    @pytest.mark.asyncio
    async def test_port_in_use(self):
        """Test a second login on a busy port fails at once."""
        port = 31725
        busy = CallbackListener(port, "/OauthRedirect", "s", host=HOST)
        await busy.start()
        opened: list[str] = []
        try:
            flow = BrowserLoginFlow(opened.append, port=port, host=HOST)
            with pytest.raises(ListenerBindError) as exc_info:
                await flow.run()
        finally:
            await busy.close()

        assert exc_info.value.reason == "bind-error"
        assert opened == []
        assert flow.state is LoginState.FAILED

    @pytest.mark.asyncio
    async def test_opener_error_fails_flow(self):
        """Test an exception from the opener ends the flow."""
        port = 31726

        def opener(url: str) -> None:
            raise OSError("no browser available")

        flow = BrowserLoginFlow(opener, port=port, host=HOST)
        with pytest.raises(OSError, match="no browser available"):
            await flow.run()

        assert flow.state is LoginState.FAILED

    @pytest.mark.asyncio
    async def test_runs_once(self):
        """Test a flow object cannot be reused."""
        port = 31727
        flow = BrowserLoginFlow(lambda url: None, port=port, timeout=0.1, host=HOST)
        with pytest.raises(LoginTimeoutError):
            await flow.run()
        with pytest.raises(RuntimeError):
            await flow.run()

    @pytest.mark.asyncio
    async def test_cancellation_closes_listener(self):
        """Test cancelling the awaiting task tears the listener down."""
        port = 31728
        flow = BrowserLoginFlow(lambda url: None, port=port, host=HOST)
        task = asyncio.create_task(flow.run())
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        listener = CallbackListener(port, "/OauthRedirect", "s", host=HOST)
        await listener.start()
        await listener.close()

    @pytest.mark.asyncio
    async def test_cancellation_during_exchange_fails_flow(self):
        """Test cancelling while the token request is in flight ends in FAILED."""
        port = 31730
        pages: list[str] = []
        exchange_started = asyncio.Event()

        async def slow_token(request: httpx.Request) -> httpx.Response:
            exchange_started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, json={"access_token": "t", "instance_url": "https://x"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(slow_token)) as client:
            flow = BrowserLoginFlow(
                callback_opener(port, pages), port=port, http_client=client, host=HOST
            )
            task = asyncio.create_task(flow.run())
            await asyncio.wait_for(exchange_started.wait(), timeout=5)
            assert flow.state is LoginState.EXCHANGING

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert flow.state is LoginState.FAILED
        assert isinstance(flow.failure, asyncio.CancelledError)

        listener = CallbackListener(port, "/OauthRedirect", "s", host=HOST)
        await listener.start()
        await listener.close()


class TestCallbackListener:
    """Tests for the listener on its own."""

    @pytest.mark.asyncio
    async def test_late_callback_gets_page(self):
        """Test callbacks after the outcome get a page but change nothing."""
        port = 31729
        listener = CallbackListener(port, "/OauthRedirect", "good-state", host=HOST)
        await listener.start()
        try:
            async with httpx.AsyncClient(trust_env=False) as browser:
                url = f"http://{HOST}:{port}/OauthRedirect"
                first = await browser.get(url, params={"code": "c1", "state": "good-state"})
                second = await browser.get(url, params={"error": "access_denied"})
            code = await listener.wait_for_code()
        finally:
            await listener.close()

        assert first.status_code == 200
        assert second.status_code == 200
        assert "already finished" in second.text
        assert code == "c1"
