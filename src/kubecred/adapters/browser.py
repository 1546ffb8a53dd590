"""Browser capability.

Launching the browser is delegated to the standard library's webbrowser
module; this adapter only turns its failure signal into an exception.
"""

from __future__ import annotations

__all__ = [
    "Browser",
    "BrowserError",
    "SystemBrowser",
]

import webbrowser
from typing import Protocol, runtime_checkable

from kubecred.exceptions import KubecredError


class BrowserError(KubecredError):
    """The system browser could not be opened."""

    failure_type = "browser_failure"


@runtime_checkable
class Browser(Protocol):
    """Opens a URL for the user."""

    def open(self, url: str) -> None:
        """Open url, raising BrowserError on failure."""
        ...


class SystemBrowser:
    """Opens URLs in the user's default browser."""

    def open(self, url: str) -> None:
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            raise BrowserError(f"could not open the browser: {e}") from e
        if not opened:
            raise BrowserError("no runnable browser was found")
