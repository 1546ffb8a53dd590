"""GetToken use case of the credential plugin.

Loads the cached token set, obtains a usable one through the orchestrator,
persists it, and writes the ExecCredential for kubectl.
"""

from __future__ import annotations

__all__ = [
    "GetToken",
    "GetTokenInput",
]

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kubecred.authentication.authentication import Input as AuthenticationInput
from kubecred.config import GrantOptionSet, Provider
from kubecred.exceptions import TokenCacheError
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.tokencache import TokenCache
    from kubecred.authentication.authentication import Authentication
    from kubecred.credentialplugin.writer import ExecCredentialWriter
    from kubecred.oidc.token import TokenSet


@dataclass(frozen=True)
class GetTokenInput:
    """Input of GetToken.do().

    Attributes:
        provider: OIDC provider registration.
        grant_option_set: Configured grant flow.
        force_refresh: Do not reuse a valid cached ID token.
    """

    provider: Provider
    grant_option_set: GrantOptionSet = field(default_factory=GrantOptionSet)
    force_refresh: bool = False


class GetToken:
    """Credential plugin entry: cache, authenticate, write."""

    def __init__(
        self,
        authentication: "Authentication",
        token_cache: "TokenCache",
        writer: "ExecCredentialWriter",
        logger: logging.Logger | None = None,
    ) -> None:
        self._authentication = authentication
        self._token_cache = token_cache
        self._writer = writer
        self._logger = logger or get_system_logger()

    async def do(self, params: GetTokenInput) -> None:
        """Obtain a token set for the provider and write the ExecCredential.

        Raises:
            TokenCacheError: If the new token set cannot be cached.
            KubecredError: From the orchestrator or the writer.
        """
        key = params.provider.cache_key()
        cached = self._load(key)

        output = await self._authentication.do(
            AuthenticationInput(
                provider=params.provider,
                grant_option_set=params.grant_option_set,
                cached_token_set=cached,
                force_refresh=params.force_refresh,
            )
        )

        if not output.already_has_valid_id_token:
            try:
                self._token_cache.save(key, output.token_set)
            except TokenCacheError as e:
                raise TokenCacheError(f"could not write the token cache: {e}") from e
            self._logger.debug({"event": "token_cache_saved", "message": "Saved the token set to the cache"})

        self._writer.write(output.token_set)

    def _load(self, key: str) -> "TokenSet | None":
        try:
            cached = self._token_cache.load(key)
        except TokenCacheError as e:
            # Unreadable cache means re-authentication, not failure
            self._logger.info(
                {
                    "event": "token_cache_unreadable",
                    "message": f"Could not read the token cache: {e}",
                }
            )
            return None

        if cached is None:
            self._logger.debug({"event": "token_cache_miss", "message": "No cached token set"})
        return cached
