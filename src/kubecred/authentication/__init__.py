"""Token set acquisition.

This module provides:
- Authentication: orchestrator choosing between cache, refresh and grant flow
- Grant flows: Browser and Keyboard (authorization code), ROPC (password)
"""

from kubecred.authentication.authcode import Browser, Keyboard
from kubecred.authentication.authentication import Authentication, Input, Output
from kubecred.authentication.protocol import GrantFlow
from kubecred.authentication.ropc import ROPC

__all__ = [
    # Orchestrator
    "Authentication",
    "Input",
    "Output",
    # Grant flows
    "Browser",
    "GrantFlow",
    "Keyboard",
    "ROPC",
]
