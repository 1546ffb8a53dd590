"""OIDC domain primitives.

This module provides:
- Security parameters (state, nonce) for authorization requests
- PKCE parameter generation with method negotiation
- The token set model and ID token claims decoding
"""

from kubecred.oidc.pkce import (
    PKCEMethod,
    PKCEParams,
    new_pkce,
)
from kubecred.oidc.security import (
    new_nonce,
    new_state,
)
from kubecred.oidc.token import (
    IDTokenClaims,
    TokenSet,
    decode_id_token_claims,
)

__all__ = [
    # Security parameters
    "new_nonce",
    "new_state",
    # PKCE
    "PKCEMethod",
    "PKCEParams",
    "new_pkce",
    # Tokens
    "IDTokenClaims",
    "TokenSet",
    "decode_id_token_claims",
]
