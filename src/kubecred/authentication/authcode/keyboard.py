"""Keyboard-interactive authorization code flow.

The user opens the authorization URL on any device, signs in, and types the
code the provider displays. No local listener is involved: the redirect URI
is the out-of-band sentinel.

Flow:
1. Generate state, nonce and PKCE parameters
2. Build the authorization URL with the out-of-band redirect URI
3. Show the URL and read the code from the terminal
4. Exchange the code with the same PKCE verifier, nonce and redirect URI

Reading the code blocks a worker thread. Cancelling the calling task returns
at once, but the thread stays blocked on the terminal until a line arrives,
and asyncio.run waits for it when it shuts down the default executor.
"""

from __future__ import annotations

__all__ = [
    "Keyboard",
]

import asyncio
import logging
from typing import TYPE_CHECKING

from kubecred.adapters.oidcclient import AuthCodeURLInput, ExchangeAuthCodeInput
from kubecred.constants import KEYBOARD_PROMPT, OOB_REDIRECT_URI
from kubecred.exceptions import GrantFlowError, InputError, OIDCClientError, SecurityParameterError
from kubecred.oidc.pkce import new_pkce
from kubecred.oidc.security import new_nonce, new_state
from kubecred.oidc.token import TokenSet
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.oidcclient import OIDCClient
    from kubecred.adapters.reader import Reader
    from kubecred.config import KeyboardOption


class Keyboard:
    """Authorization code flow with manual code entry."""

    def __init__(self, reader: "Reader", logger: logging.Logger | None = None) -> None:
        self._reader = reader
        self._logger = logger or get_system_logger()

    async def acquire_token_set(self, option: "KeyboardOption", client: "OIDCClient") -> TokenSet:
        """Run the flow once.

        Args:
            option: Keyboard flow options.
            client: OIDC client for the provider.

        Returns:
            TokenSet from the code exchange.

        Raises:
            GrantFlowError: Naming the stage that failed.
        """
        self._logger.debug({"event": "keyboard_flow_started", "message": "Starting the keyboard-interactive flow"})

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

        try:
            auth_code_url = client.get_auth_code_url(
                AuthCodeURLInput(
                    state=state,
                    nonce=nonce,
                    pkce=pkce,
                    redirect_uri=OOB_REDIRECT_URI,
                    auth_request_extra_params=dict(option.auth_request_extra_params),
                )
            )
        except OIDCClientError as e:
            raise GrantFlowError(f"could not build the authorization URL: {e}") from e

        self._logger.info(
            {
                "event": "authorization_url_shown",
                "message": f"Please visit the following URL in your browser: {auth_code_url}",
            }
        )

        try:
            code = await asyncio.to_thread(self._reader.read_string, KEYBOARD_PROMPT)
        except InputError as e:
            raise GrantFlowError(f"could not read an authorization code: {e}") from e

        try:
            token_set = await client.exchange_auth_code(
                ExchangeAuthCodeInput(
                    code=code,
                    pkce=pkce,
                    nonce=nonce,
                    redirect_uri=OOB_REDIRECT_URI,
                )
            )
        except OIDCClientError as e:
            raise GrantFlowError(f"could not exchange the authorization code: {e}") from e

        return TokenSet(
            id_token=token_set.id_token,
            refresh_token=token_set.refresh_token,
            id_token_claims=token_set.id_token_claims,
        )
