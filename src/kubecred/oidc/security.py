"""State and nonce generation for authorization requests.

Both values are drawn from the OS CSPRNG (via `secrets`) and encoded as
unpadded URL-safe base64, so they can be placed in a query string without
percent-encoding. Each value is single-use: a new one is generated for every
flow attempt.
"""

from __future__ import annotations

__all__ = [
    "new_nonce",
    "new_state",
    "random_urlsafe_string",
]

import base64
import secrets

from kubecred.constants import NONCE_BYTES, STATE_BYTES
from kubecred.exceptions import SecurityParameterError


def random_urlsafe_string(num_bytes: int) -> str:
    """Return num_bytes of random data as unpadded URL-safe base64.

    Args:
        num_bytes: Number of random bytes to draw.

    Returns:
        Encoded string (43 characters for 32 bytes).

    Raises:
        SecurityParameterError: If the random source is unavailable.
    """
    try:
        raw = secrets.token_bytes(num_bytes)
    except (OSError, NotImplementedError) as e:
        raise SecurityParameterError(f"could not read from the random source: {e}") from e
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def new_state() -> str:
    """Generate an anti-CSRF state for one authorization request."""
    return random_urlsafe_string(STATE_BYTES)


def new_nonce() -> str:
    """Generate a nonce to be asserted into the ID token."""
    return random_urlsafe_string(NONCE_BYTES)
