"""Token set model and ID token claims decoding.

Claims are decoded from the JWT payload without signature verification.
Verifying the ID token is the OIDC client's job at issuance time; here the
claims are only read back from a token we already hold, to judge expiry.
"""

from __future__ import annotations

__all__ = [
    "IDTokenClaims",
    "TokenSet",
    "decode_id_token_claims",
]

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import BaseModel, ConfigDict, Field

from kubecred.exceptions import AuthenticationError


@dataclass(frozen=True)
class IDTokenClaims:
    """Claims of an ID token relevant to the credential plugin.

    Attributes:
        subject: The 'sub' claim.
        expiry: When the token expires (from 'exp'), aware UTC.
        claims: All decoded claims.
    """

    subject: str
    expiry: datetime
    claims: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def is_expired(self, now: datetime, margin: timedelta = timedelta(0)) -> bool:
        """Check whether the token is expired at now, allowing for margin.

        The token counts as valid only while expiry is strictly after now + margin.
        """
        return not self.expiry > now + margin


class TokenSet(BaseModel):
    """Tokens issued by the provider.

    Instances are immutable; refresh and grant flows return new ones.

    Attributes:
        id_token: Raw ID token (JWT), used as the Kubernetes bearer token.
        refresh_token: Refresh token, if the provider issued one.
        id_token_claims: Decoded claims of id_token, not persisted.
    """

    model_config = ConfigDict(frozen=True)

    id_token: str = Field(repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    id_token_claims: IDTokenClaims | None = Field(default=None, exclude=True)

    def to_json(self) -> str:
        """Serialize to JSON string for the token cache."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "TokenSet":
        """Deserialize from JSON string."""
        return cls.model_validate_json(data)


def decode_id_token_claims(id_token: str) -> IDTokenClaims:
    """Decode the claims of an ID token without validating its signature.

    Args:
        id_token: JWT string.

    Returns:
        IDTokenClaims with subject and expiry.

    Raises:
        AuthenticationError: If the token is malformed or has no 'exp' claim.
    """
    try:
        claims: dict[str, Any] = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.DecodeError as e:
        raise AuthenticationError(f"could not decode the ID token: {e}") from e

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise AuthenticationError("could not decode the ID token: missing 'exp' claim")

    try:
        expiry = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, ValueError, OSError) as e:
        raise AuthenticationError(f"could not decode the ID token: 'exp' claim out of range: {e}") from e

    return IDTokenClaims(
        subject=str(claims.get("sub", "")),
        expiry=expiry,
        claims=claims,
    )
