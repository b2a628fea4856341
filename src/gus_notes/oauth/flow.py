"""Browser-based PKCE login for GUS.

A login runs as a small state machine::

    IDLE -> AWAITING_CALLBACK -> EXCHANGING -> SUCCEEDED
       \\            \\               \\
        +------------+---------------+--> FAILED(reason)

1. A fresh PKCE verifier/challenge and ``state`` nonce are generated.
2. A transient aiohttp listener is bound on ``localhost:<port>`` serving only
   the redirect URI's path. A port already in use fails the flow at once.
3. The injected opener is called with the authorization URL.
4. One watchdog (``asyncio.wait_for``) races the callback. Whichever wins
   tears the listener down; the loser has no effect.
5. The authorization code is POSTed to the token endpoint together with the
   verifier.

The listener and the watchdog are released on every exit path.
"""

from __future__ import annotations

import asyncio
import enum
import html
import inspect
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlencode

import httpx
import msgspec
from aiohttp import web

from ..config import (
    CALLBACK_TIMEOUT_SECONDS,
    DEFAULT_CALLBACK_PORT,
    GusConfig,
    resolve_config,
)
from ..errors import (
    InvalidStateError,
    ListenerBindError,
    LoginError,
    LoginTimeoutError,
    MissingCodeError,
    OAuthCallbackError,
    TokenExchangeError,
)
from ..logging_config import get_logger
from ..responses import decode_json, extract_error_message
from .models import TokenResponse
from .pkce import generate_code_challenge, generate_code_verifier, generate_state

logger = get_logger("oauth.flow")

BrowserOpener = Callable[[str], "Awaitable[Any] | None"]

_PAGE_TEMPLATE = (
    '<!DOCTYPE html><html><head><meta charset="utf-8"><title>GUS Auth</title>'
    "</head><body><p>{message}</p></body></html>"
)


class LoginState(enum.Enum):
    """Lifecycle of a single :class:`BrowserLoginFlow`."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PKCEHandshake(msgspec.Struct, frozen=True, kw_only=True):
    """Secrets for one login attempt. Never persisted, never reused."""

    verifier: str
    challenge: str
    state: str
    listener_port: int

    @classmethod
    def create(cls, listener_port: int) -> "PKCEHandshake":
        verifier = generate_code_verifier()
        return cls(
            verifier=verifier,
            challenge=generate_code_challenge(verifier),
            state=generate_state(),
            listener_port=listener_port,
        )


def build_auth_url(
    code_challenge: str,
    state: str,
    config: GusConfig | dict[str, Any] | None = None,
) -> str:
    """Build the authorization URL the user's browser is sent to.

    Args:
        code_challenge: S256 PKCE challenge
        state: CSRF nonce echoed back on the redirect
        config: Connection config or partial overrides

    Returns:
        str: ``<instance>/services/oauth2/authorize?...``
    """
    cfg = resolve_config(config)
    params = {
        "response_type": "code",
        "client_id": cfg.client_id,
        "redirect_uri": cfg.redirect_uri,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "scope": cfg.scopes,
        "state": state,
    }
    return f"{cfg.base_url}/services/oauth2/authorize?{urlencode(params)}"


async def exchange_code_for_token(
    code: str,
    code_verifier: str,
    config: GusConfig | dict[str, Any] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    """Exchange an authorization code for an access token.

    Args:
        code: Authorization code from the redirect
        code_verifier: Verifier matching the challenge sent earlier
        config: Connection config or partial overrides
        http_client: Client to use; a short-lived one is created when omitted

    Returns:
        TokenResponse: The token payload

    Raises:
        TokenExchangeError: On transport failure, non-2xx status or a body
            without an access token
    """
    cfg = resolve_config(config)
    url = f"{cfg.base_url}/services/oauth2/token"
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": cfg.redirect_uri,
        "client_id": cfg.client_id,
        "code_verifier": code_verifier,
    }

    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(url, data=form)
        else:
            response = await http_client.post(url, data=form)
    except httpx.HTTPError as e:
        logger.error("Token request failed: %s", e)
        raise TokenExchangeError(str(e) or e.__class__.__name__) from e

    data = decode_json(response)
    if not response.is_success:
        logger.warning("Token endpoint returned status=%d", response.status_code)
        raise TokenExchangeError(
            extract_error_message(data, response.status_code),
            status_code=response.status_code,
        )

    try:
        token = msgspec.convert(data, TokenResponse)
    except msgspec.ValidationError as e:
        raise TokenExchangeError(f"unexpected token response ({e})") from e

    logger.info("Exchanged authorization code for token: instance_url=%s", token.instance_url)
    return token


class CallbackListener:
    """Transient HTTP listener that receives the OAuth redirect.

    Owns its port from :meth:`start` until :meth:`close`. Only the redirect
    path is routed; every other path gets aiohttp's 404. The first redirect
    request decides the outcome, later ones only get an informational page.
    """

    def __init__(
        self,
        port: int,
        redirect_path: str,
        expected_state: str,
        host: str = "localhost",
    ) -> None:
        self.port = port
        self.host = host
        self.redirect_path = redirect_path
        self._expected_state = expected_state
        self._runner: web.AppRunner | None = None
        self._outcome: asyncio.Future[str] | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            ListenerBindError: If the port cannot be bound
        """
        self._outcome = asyncio.get_running_loop().create_future()

        app = web.Application()
        app.router.add_get(self.redirect_path, self._handle_redirect)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            logger.error("Could not bind callback listener on port %d: %s", self.port, e)
            raise ListenerBindError(self.port, e) from e

        self._runner = runner
        logger.debug("Callback listener bound on %s:%d%s", self.host, self.port, self.redirect_path)

    async def wait_for_code(self) -> str:
        """Wait for the redirect and return the authorization code."""
        if self._outcome is None:
            raise RuntimeError("Listener has not been started")
        return await self._outcome

    async def close(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()
            logger.debug("Callback listener on port %d closed", self.port)

    async def _respond(self, request: web.Request, message: str) -> web.Response:
        # The page is fully written before the outcome is published, so the
        # browser gets its answer even though the listener closes right after.
        response = web.Response(
            text=_PAGE_TEMPLATE.format(message=html.escape(message)),
            content_type="text/html",
        )
        await response.prepare(request)
        await response.write_eof()
        return response

    async def _handle_redirect(self, request: web.Request) -> web.Response:
        outcome = self._outcome
        if outcome is None or outcome.done():
            return await self._respond(
                request, "This login attempt has already finished. You can close this window."
            )

        params = request.query
        error = params.get("error")
        if error:
            description = params.get("error_description")
            response = await self._respond(request, f"Error: {description or error}")
            outcome.set_exception(OAuthCallbackError(error, description))
            return response

        if params.get("state") != self._expected_state:
            response = await self._respond(request, "Invalid state parameter. Please try again.")
            outcome.set_exception(InvalidStateError())
            return response

        code = params.get("code")
        if not code:
            response = await self._respond(
                request, "No authorization code received. Please try again."
            )
            outcome.set_exception(MissingCodeError())
            return response

        response = await self._respond(request, "Success! You can close this window.")
        outcome.set_result(code)
        return response


class BrowserLoginFlow:
    """One PKCE login attempt.

    A flow object runs once; create a new one for each login.

    Example:
        >>> flow = BrowserLoginFlow(webbrowser.open)
        >>> token = await flow.run()
    """

    def __init__(
        self,
        opener: BrowserOpener,
        config: GusConfig | dict[str, Any] | None = None,
        *,
        port: int | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = CALLBACK_TIMEOUT_SECONDS,
        host: str = "localhost",
    ) -> None:
        """Initialize the flow.

        Args:
            opener: Called with the authorization URL; may be sync or async
            config: Connection config or partial overrides
            port: Listener port (default: the redirect URI's port, else 1717)
            http_client: Client used for the token exchange
            timeout: Seconds to wait for the callback
            host: Interface the listener binds to
        """
        self.config = resolve_config(config)
        self.port = port or self.config.redirect_port or DEFAULT_CALLBACK_PORT
        self.timeout = timeout
        self.host = host
        self._opener = opener
        self._http_client = http_client
        self.state = LoginState.IDLE
        self.failure: BaseException | None = None

    def _transition(self, new_state: LoginState) -> None:
        logger.debug("Login flow %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _fail(self, exc: BaseException) -> None:
        self.failure = exc
        reason = exc.reason if isinstance(exc, LoginError) else exc.__class__.__name__
        logger.warning("Login failed: reason=%s", reason)
        self._transition(LoginState.FAILED)

    async def _open_and_wait(self, listener: CallbackListener, auth_url: str) -> str:
        result = self._opener(auth_url)
        if inspect.isawaitable(result):
            await result
        return await listener.wait_for_code()

    async def run(self) -> TokenResponse:
        """Run the login to completion.

        Returns:
            TokenResponse: The exchanged token

        Raises:
            ListenerBindError: The port is already in use
            LoginTimeoutError: No callback within ``timeout`` seconds
            OAuthCallbackError: The user denied access or the server errored
            InvalidStateError: The callback's state did not match
            MissingCodeError: The callback carried no code
            TokenExchangeError: The code could not be exchanged
            RuntimeError: The flow was already run
        """
        if self.state is not LoginState.IDLE:
            raise RuntimeError("A login flow can only be run once")

        handshake = PKCEHandshake.create(self.port)
        auth_url = build_auth_url(handshake.challenge, handshake.state, self.config)
        listener = CallbackListener(
            port=handshake.listener_port,
            redirect_path=self.config.redirect_path,
            expected_state=handshake.state,
            host=self.host,
        )

        try:
            await listener.start()
        except ListenerBindError as e:
            self._fail(e)
            raise

        self._transition(LoginState.AWAITING_CALLBACK)
        logger.info(
            "Waiting for GUS login callback on port %d (timeout %ss)",
            handshake.listener_port,
            self.timeout,
        )
        try:
            code = await asyncio.wait_for(
                self._open_and_wait(listener, auth_url), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            error = LoginTimeoutError()
            self._fail(error)
            raise error from None
        except BaseException as e:
            self._fail(e)
            raise
        finally:
            await listener.close()

        self._transition(LoginState.EXCHANGING)
        try:
            token = await exchange_code_for_token(
                code, handshake.verifier, self.config, self._http_client
            )
        except BaseException as e:
            self._fail(e)
            raise

        self._transition(LoginState.SUCCEEDED)
        return token


async def login_via_browser(
    opener: BrowserOpener,
    config: GusConfig | dict[str, Any] | None = None,
    *,
    port: int | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = CALLBACK_TIMEOUT_SECONDS,
) -> TokenResponse:
    """Run a single browser login and return the exchanged token."""
    flow = BrowserLoginFlow(
        opener, config, port=port, http_client=http_client, timeout=timeout
    )
    return await flow.run()
