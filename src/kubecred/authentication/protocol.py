"""Protocol definition for grant flows.

Each grant flow acquires a token set for one kind of GrantOption. The
orchestrator picks the flow by which option is populated; flows share no
base class.
"""

from __future__ import annotations

__all__ = [
    "GrantFlow",
]

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kubecred.adapters.oidcclient import OIDCClient
    from kubecred.oidc.token import TokenSet


@runtime_checkable
class GrantFlow(Protocol):
    """Acquires a token set interactively."""

    async def acquire_token_set(self, option: Any, client: "OIDCClient") -> "TokenSet":
        """Run the flow once.

        Security parameters are generated inside every call and never reused.

        Args:
            option: The populated grant option for this flow.
            client: OIDC client for the provider.

        Returns:
            A new TokenSet.

        Raises:
            AuthenticationError: If any stage of the flow fails.
        """
        ...
