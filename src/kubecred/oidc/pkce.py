"""PKCE (Proof Key for Code Exchange, RFC 7636) parameter generation.

The method is chosen from the set the OIDC client reports as supported,
strongest first: S256, then plain, then none. The verifier is only ever sent
to the token endpoint at code-exchange time.
"""

from __future__ import annotations

__all__ = [
    "PKCEMethod",
    "PKCEParams",
    "new_pkce",
]

import base64
import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from kubecred.constants import PKCE_VERIFIER_BYTES
from kubecred.exceptions import SecurityParameterError
from kubecred.oidc.security import random_urlsafe_string


class PKCEMethod(str, Enum):
    """Code challenge methods, values as sent in code_challenge_method."""

    NONE = "none"
    PLAIN = "plain"
    S256 = "S256"


# Strongest first
_PREFERENCE = (PKCEMethod.S256, PKCEMethod.PLAIN, PKCEMethod.NONE)


@dataclass(frozen=True)
class PKCEParams:
    """PKCE parameters for one authorization request.

    Attributes:
        method: Challenge method.
        verifier: Secret sent at code exchange (empty for method none).
        challenge: Value sent in the authorization URL (empty for method none).
    """

    method: PKCEMethod
    verifier: str = field(repr=False)
    challenge: str

    @property
    def enabled(self) -> bool:
        """Whether PKCE parameters should be sent at all."""
        return self.method is not PKCEMethod.NONE


def _parse_methods(methods: Iterable[PKCEMethod | str]) -> set[PKCEMethod]:
    parsed: set[PKCEMethod] = set()
    for method in methods:
        try:
            parsed.add(PKCEMethod(method))
        except ValueError:
            continue  # Unknown methods are not ours to implement
    return parsed


def _s256_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def new_pkce(supported_methods: Iterable[PKCEMethod | str]) -> PKCEParams:
    """Generate fresh PKCE parameters for the strongest supported method.

    Args:
        supported_methods: Methods the OIDC client supports. Unknown names
            are ignored.

    Returns:
        PKCEParams with a new verifier.

    Raises:
        SecurityParameterError: If no supported method is implemented here,
            or the random source fails.
    """
    methods = _parse_methods(supported_methods)
    for method in _PREFERENCE:
        if method not in methods:
            continue
        if method is PKCEMethod.NONE:
            return PKCEParams(method=method, verifier="", challenge="")
        verifier = random_urlsafe_string(PKCE_VERIFIER_BYTES)
        if method is PKCEMethod.S256:
            return PKCEParams(method=method, verifier=verifier, challenge=_s256_challenge(verifier))
        return PKCEParams(method=method, verifier=verifier, challenge=verifier)

    raise SecurityParameterError("no supported PKCE method is available")
