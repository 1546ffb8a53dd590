"""Loopback redirect receiver for the browser authorization code flow.

Runs a short-lived local HTTP listener that receives the provider's
redirect carrying the authorization code. OIDC client implementations use
get_token_by_auth_code() to implement OIDCClient.get_token_by_auth_code.

Flow:
1. Bind the first candidate address that is free
2. Build the authorization URL with http://<host>:<port>/ as redirect URI
3. Publish the local URL on the ready future (opening it redirects to the
   authorization URL)
4. Wait for the redirect; the returned state must equal the issued state
5. Shut the listener down, then exchange the code

The listener is released on every exit path (code received, provider
error, state mismatch, timeout or cancellation of the caller).
"""

from __future__ import annotations

__all__ = [
    "LoopbackRedirectServer",
    "get_token_by_auth_code",
]

import asyncio
import logging
import secrets
import socket
from collections.abc import Sequence
from typing import TYPE_CHECKING

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from kubecred.adapters.oidcclient import AuthCodeURLInput, ExchangeAuthCodeInput
from kubecred.constants import LOOPBACK_POLL_INTERVAL_SECONDS, LOOPBACK_STARTUP_TIMEOUT_SECONDS
from kubecred.exceptions import (
    AuthenticationError,
    AuthorizationResponseError,
    GrantFlowError,
    StateMismatchError,
)
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.oidcclient import GetTokenByAuthCodeInput, OIDCClient
    from kubecred.oidc.token import TokenSet

_SUCCESS_HTML = """<!DOCTYPE html>
<html>
  <head><title>Authenticated</title></head>
  <body>
    <p>Authenticated. You can close this window and return to the terminal.</p>
  </body>
</html>
"""

_FAILURE_HTML = """<!DOCTYPE html>
<html>
  <head><title>Authentication failed</title></head>
  <body>
    <p>Authentication failed. Return to the terminal for details.</p>
  </body>
</html>
"""

# Backlog for the listening socket
_LISTEN_BACKLOG = 16


def _split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    return host.strip("[]"), int(port)


def _format_host(host: str) -> str:
    return f"[{host}]" if ":" in host else host


class LoopbackRedirectServer:
    """Local HTTP listener receiving one authorization response.

    Usage:
        async with LoopbackRedirectServer(["127.0.0.1:8000"], state) as server:
            server.set_authorization_url(build_url(server.redirect_uri))
            code = await server.wait_for_code()
    """

    def __init__(
        self,
        bind_addresses: Sequence[str],
        expected_state: str,
        *,
        redirect_url_hostname: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the receiver. Nothing is bound until start().

        Args:
            bind_addresses: Candidate "host:port" addresses, tried in order.
            expected_state: State issued with the authorization request.
            redirect_url_hostname: Hostname for the redirect URI instead of the bound host.
            logger: Logger (default: system logger).
        """
        self._bind_addresses = list(bind_addresses)
        self._expected_state = expected_state
        self._redirect_url_hostname = redirect_url_hostname
        self._logger = logger or get_system_logger()

        self._authorization_url: str | None = None
        self._code: asyncio.Future[str] | None = None
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = ""
        self._port = 0

        self._app = Starlette(routes=[Route("/", self._handle_redirect, methods=["GET"])])

    async def __aenter__(self) -> "LoopbackRedirectServer":
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    @property
    def url(self) -> str:
        """URL of the listener, as opened in the browser."""
        return f"http://{_format_host(self._host)}:{self._port}/"

    @property
    def redirect_uri(self) -> str:
        """Redirect URI to register in the authorization request."""
        host = self._redirect_url_hostname or self._host
        return f"http://{_format_host(host)}:{self._port}/"

    def set_authorization_url(self, url: str) -> None:
        """Set where requests to the listener URL without a code are redirected."""
        self._authorization_url = url

    def _bind(self) -> socket.socket:
        errors: list[str] = []
        for address in self._bind_addresses:
            host, port = _split_address(address)
            family = socket.AF_INET6 if ":" in host else socket.AF_INET
            sock = socket.socket(family, socket.SOCK_STREAM)
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((host, port))
                sock.listen(_LISTEN_BACKLOG)
            except OSError as e:
                sock.close()
                errors.append(f"{address}: {e.strerror or e}")
                self._logger.debug(
                    {
                        "event": "loopback_bind_failed",
                        "message": f"Could not bind {address}: {e}",
                        "address": address,
                    }
                )
                continue
            sock.setblocking(False)
            self._host = host
            self._port = sock.getsockname()[1]
            return sock

        raise GrantFlowError(f"could not bind the local server ({'; '.join(errors)})")

    async def start(self) -> None:
        """Bind and start serving.

        Raises:
            GrantFlowError: If no candidate address can be bound or the
                listener does not come up.
        """
        self._code = asyncio.get_running_loop().create_future()
        self._socket = self._bind()

        for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(logger_name).setLevel(logging.CRITICAL)

        config = uvicorn.Config(
            self._app,
            log_config=None,
            access_log=False,
            lifespan="off",
            ws="none",
        )
        self._server = uvicorn.Server(config)
        # Uses uvicorn's _serve() to avoid signal handler conflicts.
        self._serve_task = asyncio.create_task(self._server._serve(sockets=[self._socket]))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + LOOPBACK_STARTUP_TIMEOUT_SECONDS
        while not self._server.started:
            if self._serve_task.done() or loop.time() >= deadline:
                await self.stop()
                raise GrantFlowError(f"the local server did not start on {self.url}")
            await asyncio.sleep(LOOPBACK_POLL_INTERVAL_SECONDS)

        self._logger.debug(
            {
                "event": "loopback_started",
                "message": f"Local server is listening on {self.url}",
                "url": self.url,
            }
        )

    async def stop(self) -> None:
        """Stop serving and release the socket. Safe to call more than once."""
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            try:
                await self._serve_task
            except asyncio.CancelledError:
                if not self._serve_task.cancelled():
                    raise
            except Exception as e:
                # Shutdown must not mask the error that ended the flow
                self._logger.warning(
                    {
                        "event": "loopback_shutdown_failed",
                        "message": f"Local server did not shut down cleanly: {e}",
                        "error_type": type(e).__name__,
                    }
                )
            self._serve_task = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        if self._code is not None and not self._code.done():
            self._code.cancel()
        self._server = None

    async def wait_for_code(self) -> str:
        """Wait for the redirect and return the authorization code.

        Raises:
            StateMismatchError: If the redirect carried a different state.
            AuthorizationResponseError: If the provider returned an error.
        """
        if self._code is None:
            raise RuntimeError("wait_for_code() called before start()")
        return await asyncio.shield(self._code)

    def _resolve(self, code: str | None = None, error: AuthenticationError | None = None) -> None:
        if self._code is None or self._code.done():
            return
        if error is not None:
            self._code.set_exception(error)
        else:
            self._code.set_result(code or "")

    async def _handle_redirect(self, request: Request) -> Response:
        params = request.query_params

        if self._code is not None and self._code.done():
            return PlainTextResponse("The authorization response was already received.", status_code=410)

        error = params.get("error")
        if error:
            self._resolve(error=AuthorizationResponseError(error, params.get("error_description")))
            return HTMLResponse(_FAILURE_HTML, status_code=400)

        code = params.get("code")
        state = params.get("state")
        if code is None and state is None:
            if self._authorization_url is None:
                return PlainTextResponse("The authorization URL is not ready yet.", status_code=503)
            return RedirectResponse(self._authorization_url, status_code=302)

        if not code or not state:
            return PlainTextResponse("Missing code or state parameter.", status_code=400)

        if not secrets.compare_digest(state.encode(), self._expected_state.encode()):
            self._logger.warning(
                {
                    "event": "loopback_state_mismatch",
                    "message": "Redirect carried a state that was not issued, aborting",
                }
            )
            self._resolve(error=StateMismatchError("state does not match the authorization request"))
            return HTMLResponse(_FAILURE_HTML, status_code=400)

        self._resolve(code=code)
        return HTMLResponse(_SUCCESS_HTML)


async def get_token_by_auth_code(
    client: "OIDCClient",
    params: "GetTokenByAuthCodeInput",
    ready: "asyncio.Future[str]",
    logger: logging.Logger | None = None,
) -> "TokenSet":
    """Run the browser-redirect grant against client using a loopback listener.

    Args:
        client: OIDC client building the URL and exchanging the code.
        params: Security parameters, bind addresses and extra parameters.
        ready: Receives the listener URL once it accepts connections.
        logger: Logger (default: system logger).

    Returns:
        TokenSet from the code exchange.

    Raises:
        GrantFlowError: If the listener cannot be started.
        StateMismatchError: If the redirect carried a different state.
        AuthorizationResponseError: If the provider returned an error.
        OIDCClientError: If the code exchange fails.
    """
    async with LoopbackRedirectServer(
        params.bind_addresses,
        params.state,
        redirect_url_hostname=params.redirect_url_hostname,
        logger=logger,
    ) as server:
        redirect_uri = server.redirect_uri
        server.set_authorization_url(
            client.get_auth_code_url(
                AuthCodeURLInput(
                    state=params.state,
                    nonce=params.nonce,
                    pkce=params.pkce,
                    redirect_uri=redirect_uri,
                    auth_request_extra_params=params.auth_request_extra_params,
                )
            )
        )
        if not ready.done():
            ready.set_result(server.url)
        code = await server.wait_for_code()

    return await client.exchange_auth_code(
        ExchangeAuthCodeInput(
            code=code,
            pkce=params.pkce,
            nonce=params.nonce,
            redirect_uri=redirect_uri,
        )
    )
