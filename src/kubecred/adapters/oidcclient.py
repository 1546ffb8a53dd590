"""Protocol definition for OIDC clients.

The wire-level OAuth2/OIDC client (discovery, token endpoint, ID token
verification) lives outside this package. Grant flows and the orchestrator
consume it through the structural protocols below, so any implementation
can be plugged in without inheriting from our code.

Implementations must:
- raise OIDCClientError for provider, network and verification failures
- verify the ID token in exchange_auth_code, including that its 'nonce'
  claim equals ExchangeAuthCodeInput.nonce
- never put the PKCE verifier into an authorization URL

Implementations of get_token_by_auth_code can delegate to
kubecred.adapters.loopback.get_token_by_auth_code, which runs the local
redirect listener and checks the returned state.
"""

from __future__ import annotations

__all__ = [
    "AuthCodeURLInput",
    "ExchangeAuthCodeInput",
    "GetTokenByAuthCodeInput",
    "OIDCClient",
    "OIDCClientFactory",
]

import asyncio
from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kubecred.oidc.pkce import PKCEMethod, PKCEParams

if TYPE_CHECKING:
    from kubecred.config import Provider
    from kubecred.oidc.token import TokenSet


@dataclass(frozen=True)
class AuthCodeURLInput:
    """Parameters of an authorization request.

    Attributes:
        state: Anti-CSRF state bound to this request.
        nonce: Nonce to be asserted into the ID token.
        pkce: PKCE parameters; only the challenge goes into the URL.
        redirect_uri: Where the provider sends the user back.
        auth_request_extra_params: Provider-specific parameters, forwarded verbatim.
    """

    state: str = field(repr=False)
    nonce: str = field(repr=False)
    pkce: PKCEParams
    redirect_uri: str
    auth_request_extra_params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExchangeAuthCodeInput:
    """Parameters of an authorization code exchange.

    Attributes:
        code: Authorization code returned by the provider.
        pkce: The same PKCE parameters used for the authorization request.
        nonce: The same nonce used for the authorization request.
        redirect_uri: The same redirect URI used for the authorization request.
    """

    code: str = field(repr=False)
    pkce: PKCEParams
    nonce: str = field(repr=False)
    redirect_uri: str


@dataclass(frozen=True)
class GetTokenByAuthCodeInput:
    """Parameters of a browser-redirect authorization code grant.

    Attributes:
        bind_addresses: Candidate "host:port" addresses for the local listener.
        state: Anti-CSRF state; the redirect must carry exactly this value.
        nonce: Nonce to be asserted into the ID token.
        pkce: PKCE parameters.
        redirect_url_hostname: Hostname for the redirect URI, or None for the bound host.
        auth_request_extra_params: Provider-specific parameters, forwarded verbatim.
    """

    bind_addresses: tuple[str, ...]
    state: str = field(repr=False)
    nonce: str = field(repr=False)
    pkce: PKCEParams
    redirect_url_hostname: str | None = None
    auth_request_extra_params: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class OIDCClient(Protocol):
    """Client for one OIDC provider registration."""

    def supported_pkce_methods(self) -> Set[PKCEMethod | str]:
        """Return the PKCE methods this client can use with the provider."""
        ...

    def get_auth_code_url(self, params: AuthCodeURLInput) -> str:
        """Build the authorization URL. Performs no I/O."""
        ...

    async def exchange_auth_code(self, params: ExchangeAuthCodeInput) -> "TokenSet":
        """Exchange an authorization code for tokens and verify the ID token."""
        ...

    async def refresh(self, refresh_token: str) -> "TokenSet":
        """Obtain a new token set with a refresh token."""
        ...

    async def get_token_by_ropc(self, username: str, password: str) -> "TokenSet":
        """Obtain a token set with the resource owner password credentials grant."""
        ...

    async def get_token_by_auth_code(
        self,
        params: GetTokenByAuthCodeInput,
        ready: "asyncio.Future[str]",
    ) -> "TokenSet":
        """Run the browser-redirect grant.

        Must set the result of ready to the local listener URL as soon as the
        listener accepts connections, before waiting for the redirect.
        """
        ...


@runtime_checkable
class OIDCClientFactory(Protocol):
    """Creates OIDC clients, performing issuer discovery."""

    async def new(self, provider: "Provider") -> OIDCClient:
        """Create a client for provider.

        Raises:
            OIDCClientError: If discovery or client construction fails.
        """
        ...
