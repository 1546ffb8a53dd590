"""Browser-redirect authorization code flow.

The OIDC client runs a local listener (see kubecred.adapters.loopback) and
publishes its URL on a one-shot ready future. A watcher task waits for that
URL and opens it in the browser, while the flow waits for the token set
under the authentication timeout.

The browser is opened in a worker thread so the listener and the timeout
keep running while it starts. The watcher is cancelled on every exit path.
Cancelling the calling task cancels the client call, which releases the
listener.
"""

from __future__ import annotations

__all__ = [
    "Browser",
]

import asyncio
import logging
from typing import TYPE_CHECKING

from kubecred.adapters.browser import BrowserError
from kubecred.adapters.oidcclient import GetTokenByAuthCodeInput
from kubecred.exceptions import GrantFlowError, OIDCClientError, SecurityParameterError
from kubecred.oidc.pkce import new_pkce
from kubecred.oidc.security import new_nonce, new_state
from kubecred.oidc.token import TokenSet
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters import browser as browser_adapter
    from kubecred.adapters.oidcclient import OIDCClient
    from kubecred.config import BrowserOption


class Browser:
    """Authorization code flow with a local redirect listener."""

    def __init__(
        self,
        browser: "browser_adapter.Browser",
        logger: logging.Logger | None = None,
    ) -> None:
        self._browser = browser
        self._logger = logger or get_system_logger()

    async def acquire_token_set(self, option: "BrowserOption", client: "OIDCClient") -> TokenSet:
        """Run the flow once.

        Args:
            option: Bind addresses, browser and timeout options.
            client: OIDC client for the provider.

        Returns:
            TokenSet from the code exchange.

        Raises:
            GrantFlowError: If a security parameter cannot be generated, the
                client fails, or the timeout elapses.
            StateMismatchError: If the redirect carried a foreign state.
            AuthorizationResponseError: If the provider returned an error.
        """
        try:
            state = new_state()
        except SecurityParameterError as e:
            raise GrantFlowError(f"could not generate a state: {e}") from e
        try:
            nonce = new_nonce()
        except SecurityParameterError as e:
            raise GrantFlowError(f"could not generate a nonce: {e}") from e
        try:
            pkce = new_pkce(client.supported_pkce_methods())
        except SecurityParameterError as e:
            raise GrantFlowError(f"could not generate PKCE parameters: {e}") from e

        params = GetTokenByAuthCodeInput(
            bind_addresses=tuple(option.bind_addresses),
            state=state,
            nonce=nonce,
            pkce=pkce,
            redirect_url_hostname=option.redirect_url_hostname,
            auth_request_extra_params=dict(option.auth_request_extra_params),
        )

        ready: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        watcher = asyncio.create_task(self._open_when_ready(ready, option.skip_open_browser))
        try:
            token_set = await asyncio.wait_for(
                client.get_token_by_auth_code(params, ready),
                timeout=option.authentication_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GrantFlowError("authentication timed out") from e
        except OIDCClientError as e:
            raise GrantFlowError(f"could not get a token by the authorization code: {e}") from e
        finally:
            if not ready.done():
                ready.cancel()
            watcher.cancel()
            try:
                await watcher
            except asyncio.CancelledError:
                pass

        return TokenSet(
            id_token=token_set.id_token,
            refresh_token=token_set.refresh_token,
            id_token_claims=token_set.id_token_claims,
        )

    async def _open_when_ready(self, ready: "asyncio.Future[str]", skip_open_browser: bool) -> None:
        url = await ready
        if skip_open_browser:
            self._logger.info(
                {
                    "event": "authorization_url_shown",
                    "message": f"Please visit the following URL in your browser: {url}",
                }
            )
            return

        self._logger.info(
            {
                "event": "browser_opening",
                "message": f"Open {url} for authentication",
            }
        )
        try:
            # Console browsers block until they exit
            await asyncio.to_thread(self._browser.open, url)
        except BrowserError as e:
            self._logger.warning(
                {
                    "event": "browser_open_failed",
                    "message": f"Could not open the browser: {e}. Please visit {url}",
                }
            )
