"""Capabilities consumed by the authentication core.

This module provides:
- Clock, Reader and Browser capabilities with system implementations
- OIDC client protocols and their input types
- Loopback redirect receiver for the browser flow
- Token cache (OS keychain or encrypted file fallback)
"""

from kubecred.adapters.browser import Browser, BrowserError, SystemBrowser
from kubecred.adapters.clock import Clock, SystemClock
from kubecred.adapters.oidcclient import (
    AuthCodeURLInput,
    ExchangeAuthCodeInput,
    GetTokenByAuthCodeInput,
    OIDCClient,
    OIDCClientFactory,
)
from kubecred.adapters.reader import ConsoleReader, Reader
from kubecred.adapters.tokencache import (
    EncryptedFileTokenCache,
    KeyringTokenCache,
    TokenCache,
    create_token_cache,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    # Terminal
    "ConsoleReader",
    "Reader",
    # Browser
    "Browser",
    "BrowserError",
    "SystemBrowser",
    # OIDC client
    "AuthCodeURLInput",
    "ExchangeAuthCodeInput",
    "GetTokenByAuthCodeInput",
    "OIDCClient",
    "OIDCClientFactory",
    # Token cache
    "EncryptedFileTokenCache",
    "KeyringTokenCache",
    "TokenCache",
    "create_token_cache",
]
