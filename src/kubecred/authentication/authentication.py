"""Authentication orchestrator.

Decides how to obtain a usable ID token for a provider:

1. A cached token set whose ID token outlives now + margin is returned as is.
   No OIDC client is built.
2. Otherwise a cached refresh token is tried. A failed refresh is logged and
   falls through to a grant flow; when no grant flow is configured, the
   refresh error is final.
3. Otherwise exactly one grant flow runs, selected by the populated option.

Every collaborator is injected, so the orchestrator can be exercised with
fakes for the clock, the OIDC client factory and each grant flow. The
orchestrator never retries; callers decide whether to call do() again, and
every call generates fresh security parameters.
"""

from __future__ import annotations

__all__ = [
    "Authentication",
    "Input",
    "Output",
]

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from kubecred.config import BROWSER_STRATEGY, KEYBOARD_STRATEGY, ROPC_STRATEGY, GrantOptionSet, Provider
from kubecred.constants import ID_TOKEN_EXPIRY_MARGIN
from kubecred.exceptions import AuthenticationError, ConfigurationError, GrantFlowError, KubecredError, OIDCClientError
from kubecred.oidc.token import TokenSet, decode_id_token_claims
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.clock import Clock
    from kubecred.adapters.oidcclient import OIDCClient, OIDCClientFactory
    from kubecred.authentication.protocol import GrantFlow

# Prefix of wrapped grant flow errors, per strategy
_ERROR_PREFIXES = {
    BROWSER_STRATEGY: "authcode-browser error",
    KEYBOARD_STRATEGY: "authcode-keyboard error",
    ROPC_STRATEGY: "resource owner password credentials flow error",
}


@dataclass(frozen=True)
class Input:
    """Input of Authentication.do().

    Attributes:
        provider: OIDC provider registration.
        grant_option_set: Configured grant flow, at most one populated.
        cached_token_set: Token set from the cache, if any.
        force_refresh: Ignore a valid cached ID token and refresh or re-authenticate.
    """

    provider: Provider
    grant_option_set: GrantOptionSet = field(default_factory=GrantOptionSet)
    cached_token_set: TokenSet | None = None
    force_refresh: bool = False


@dataclass(frozen=True)
class Output:
    """Result of Authentication.do().

    Attributes:
        token_set: Usable token set.
        already_has_valid_id_token: True if token_set is the cached one,
            unchanged. Callers skip writing the cache in that case.
    """

    token_set: TokenSet
    already_has_valid_id_token: bool = False


class Authentication:
    """Obtains a token set from the cache, a refresh, or a grant flow."""

    def __init__(
        self,
        oidc_client_factory: "OIDCClientFactory",
        clock: "Clock",
        logger: logging.Logger | None = None,
        auth_code_browser: "GrantFlow | None" = None,
        auth_code_keyboard: "GrantFlow | None" = None,
        ropc: "GrantFlow | None" = None,
        expiry_margin: timedelta = ID_TOKEN_EXPIRY_MARGIN,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            oidc_client_factory: Builds OIDC clients (performs discovery).
            clock: Source of the current instant for expiry checks.
            logger: Logger (default: system logger).
            auth_code_browser: Browser-redirect flow.
            auth_code_keyboard: Keyboard-interactive flow.
            ropc: Password grant flow.
            expiry_margin: A cached ID token must outlive now + margin.
        """
        self._oidc_client_factory = oidc_client_factory
        self._clock = clock
        self._logger = logger or get_system_logger()
        self._flows: dict[str, "GrantFlow | None"] = {
            BROWSER_STRATEGY: auth_code_browser,
            KEYBOARD_STRATEGY: auth_code_keyboard,
            ROPC_STRATEGY: ropc,
        }
        self._expiry_margin = expiry_margin

    async def do(self, params: Input) -> Output:
        """Obtain a usable token set.

        Args:
            params: Provider, grant options and cached token set.

        Returns:
            Output with the token set to use.

        Raises:
            ConfigurationError: If the OIDC client cannot be built, or no
                grant flow is configured and the cache is unusable.
            OIDCClientError: If refresh fails and no grant flow is configured.
            GrantFlowError: If the grant flow fails, naming the strategy.
        """
        cached = params.cached_token_set

        if cached is not None and not params.force_refresh and self._is_valid(cached):
            return Output(token_set=cached, already_has_valid_id_token=True)

        selected = params.grant_option_set.selected()
        client: "OIDCClient | None" = None

        if cached is not None and cached.refresh_token:
            client = await self._new_client(params.provider)
            self._logger.info({"event": "refresh_started", "message": "Refreshing the token set"})
            try:
                token_set = await client.refresh(cached.refresh_token)
            except OIDCClientError as e:
                if selected is None:
                    raise
                self._logger.info(
                    {
                        "event": "refresh_failed",
                        "message": f"Could not refresh the token set: {e}",
                        "error_type": type(e).__name__,
                    }
                )
            else:
                self._logger.debug({"event": "refresh_succeeded", "message": "Refreshed the token set"})
                return Output(token_set=token_set, already_has_valid_id_token=False)

        if selected is None:
            raise ConfigurationError("no valid cached token and no grant flow is configured")

        strategy, option = selected
        flow = self._flows[strategy]
        if flow is None:
            raise ConfigurationError(f"grant flow {strategy} is configured but not available")

        if client is None:
            client = await self._new_client(params.provider)

        self._logger.debug(
            {
                "event": "grant_flow_dispatched",
                "message": f"Acquiring a token set with {strategy}",
                "strategy": strategy,
            }
        )
        try:
            token_set = await flow.acquire_token_set(option, client)
        except KubecredError as e:
            raise GrantFlowError(f"{_ERROR_PREFIXES[strategy]}: {e}", strategy=strategy) from e

        return Output(token_set=token_set, already_has_valid_id_token=False)

    def _is_valid(self, token_set: TokenSet) -> bool:
        claims = token_set.id_token_claims
        if claims is None:
            try:
                claims = decode_id_token_claims(token_set.id_token)
            except AuthenticationError as e:
                self._logger.debug(
                    {
                        "event": "cached_token_expired",
                        "message": f"Cached ID token is not usable: {e}",
                    }
                )
                return False

        now = self._clock.now()
        if claims.is_expired(now, self._expiry_margin):
            self._logger.debug(
                {
                    "event": "cached_token_expired",
                    "message": f"Cached ID token expired at {claims.expiry.isoformat()}",
                }
            )
            return False

        self._logger.debug(
            {
                "event": "cached_token_valid",
                "message": f"Using the cached ID token (valid until {claims.expiry.isoformat()})",
                "subject": claims.subject,
            }
        )
        return True

    async def _new_client(self, provider: Provider) -> "OIDCClient":
        try:
            return await self._oidc_client_factory.new(provider)
        except Exception as e:
            raise ConfigurationError(f"could not create an OIDC client: {e}") from e
