"""Wires a GetToken use case from the credential plugin configuration.

A command-line entry point loads CredentialPluginConfig, calls
create_get_token with its OIDC client factory, and awaits
get_token.do(params).
"""

from __future__ import annotations

__all__ = [
    "create_get_token",
]

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from kubecred.adapters.browser import SystemBrowser
from kubecred.adapters.clock import SystemClock
from kubecred.adapters.reader import ConsoleReader
from kubecred.adapters.tokencache import create_token_cache
from kubecred.authentication.authcode import Browser, Keyboard
from kubecred.authentication.authentication import Authentication
from kubecred.authentication.ropc import ROPC
from kubecred.credentialplugin.get_token import GetToken, GetTokenInput
from kubecred.credentialplugin.writer import ExecCredentialWriter
from kubecred.telemetry import configure_system_logger_file, configure_verbosity, get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.browser import Browser as BrowserCapability
    from kubecred.adapters.clock import Clock
    from kubecred.adapters.oidcclient import OIDCClientFactory
    from kubecred.adapters.reader import Reader
    from kubecred.adapters.tokencache import TokenCache
    from kubecred.config import CredentialPluginConfig


def create_get_token(
    config: "CredentialPluginConfig",
    oidc_client_factory: "OIDCClientFactory",
    force_refresh: bool = False,
    *,
    token_cache: "TokenCache | None" = None,
    reader: "Reader | None" = None,
    browser: "BrowserCapability | None" = None,
    clock: "Clock | None" = None,
    stream: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[GetToken, GetTokenInput]:
    """Create the GetToken use case and its input from configuration.

    Logging:
    - Console level follows config.verbosity (debug events from 1)
    - Warnings and errors also go to config.log_file as JSONL, when set

    Token cache:
    - OS keychain when available, else encrypted files under
      config.get_token_cache_dir()

    Args:
        config: Loaded credential plugin configuration.
        oidc_client_factory: Builds the OIDC client for the provider.
        force_refresh: Do not reuse a valid cached ID token.
        token_cache: Cache backend (default: chosen by create_token_cache).
        reader: Terminal reader (default: ConsoleReader).
        browser: Browser capability (default: SystemBrowser).
        clock: Time source (default: SystemClock).
        stream: ExecCredential output (default: sys.stdout).
        environ: Environment for KUBERNETES_EXEC_INFO (default: os.environ).

    Returns:
        Tuple of (GetToken use case, GetTokenInput for the configured provider).
    """
    configure_verbosity(config.verbosity)
    if config.log_file:
        configure_system_logger_file(Path(config.log_file).expanduser())

    logger = get_system_logger()
    reader = reader or ConsoleReader()

    authentication = Authentication(
        oidc_client_factory=oidc_client_factory,
        clock=clock or SystemClock(),
        logger=logger,
        auth_code_browser=Browser(browser or SystemBrowser(), logger=logger),
        auth_code_keyboard=Keyboard(reader, logger=logger),
        ropc=ROPC(reader, logger=logger),
    )
    get_token = GetToken(
        authentication=authentication,
        token_cache=token_cache or create_token_cache(config.get_token_cache_dir()),
        writer=ExecCredentialWriter(stream, environ=environ),
        logger=logger,
    )
    params = GetTokenInput(
        provider=config.provider,
        grant_option_set=config.grant,
        force_refresh=force_refresh,
    )
    return get_token, params
