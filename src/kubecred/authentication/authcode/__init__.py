"""Authorization code grant flows."""

from kubecred.authentication.authcode.browser import Browser
from kubecred.authentication.authcode.keyboard import Keyboard

__all__ = [
    "Browser",
    "Keyboard",
]
