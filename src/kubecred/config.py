"""Configuration for kubecred.

Defines the provider registration and the grant flow options consumed by the
authentication orchestrator, plus the file-level configuration of the
credential plugin (token cache location, log file, verbosity).

Example usage:
    # Load from config file
    config = CredentialPluginConfig.load_from_file(config_path)

    # Select the configured grant flow
    selected = config.grant.selected()
"""

from __future__ import annotations

__all__ = [
    "BROWSER_STRATEGY",
    "KEYBOARD_STRATEGY",
    "ROPC_STRATEGY",
    "BrowserOption",
    "CredentialPluginConfig",
    "GrantOption",
    "GrantOptionSet",
    "KeyboardOption",
    "Provider",
    "ROPCOption",
]

import hashlib
import json
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from kubecred.constants import (
    DEFAULT_AUTHENTICATION_TIMEOUT_SECONDS,
    DEFAULT_BIND_ADDRESSES,
    TOKEN_CACHE_DIRNAME,
)
from kubecred.exceptions import ConfigurationError
from kubecred.utils.file_helpers import get_app_dir, load_validated_json, require_file_exists

# Strategy names used in logs and error messages
BROWSER_STRATEGY = "authcode-browser"
KEYBOARD_STRATEGY = "authcode-keyboard"
ROPC_STRATEGY = "ropc"


# =============================================================================
# Provider
# =============================================================================


class Provider(BaseModel):
    """OIDC issuer and client registration.

    Immutable; passed by value into the orchestrator on every call.

    Attributes:
        issuer_url: OIDC issuer URL (e.g., "https://accounts.google.com").
        client_id: OAuth client ID.
        client_secret: OAuth client secret, if the client is confidential.
        extra_scopes: Scopes requested in addition to "openid".
        use_pkce: Force PKCE even if discovery does not advertise it.
        certificate_authority: Path to a CA bundle for the issuer.
        certificate_authority_data: Base64 PEM CA bundle for the issuer.
        skip_tls_verify: Disable TLS verification towards the issuer.
    """

    model_config = ConfigDict(frozen=True)

    issuer_url: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: SecretStr | None = None
    extra_scopes: tuple[str, ...] = ()
    use_pkce: bool = False
    certificate_authority: str | None = None
    certificate_authority_data: str | None = None
    skip_tls_verify: bool = False

    def cache_key(self) -> str:
        """Return a stable key identifying this registration in the token cache.

        Tokens issued for one issuer, client or scope set must never be
        served for another, so all of them feed the key.
        """
        secret = self.client_secret.get_secret_value() if self.client_secret else ""
        material = json.dumps(
            [self.issuer_url, self.client_id, secret, list(self.extra_scopes)],
            separators=(",", ":"),
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()


# =============================================================================
# Grant flow options
# =============================================================================


class BrowserOption(BaseModel):
    """Options for the browser-redirect authorization code flow.

    Attributes:
        bind_addresses: Candidate "host:port" addresses for the local
            listener, tried in order. Port 0 picks a free port.
        skip_open_browser: Only print the URL, do not open a browser.
        authentication_timeout_seconds: Overall time allowed for the user
            to complete authentication.
        redirect_url_hostname: Hostname used in the redirect URI instead of
            the bound host (e.g., "localhost").
        auth_request_extra_params: Extra authorization request parameters.
    """

    bind_addresses: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BIND_ADDRESSES),
        min_length=1,
    )
    skip_open_browser: bool = False
    authentication_timeout_seconds: float = Field(default=DEFAULT_AUTHENTICATION_TIMEOUT_SECONDS, gt=0)
    redirect_url_hostname: str | None = None
    auth_request_extra_params: dict[str, str] = Field(default_factory=dict)

    @field_validator("bind_addresses")
    @classmethod
    def validate_bind_addresses(cls, value: list[str]) -> list[str]:
        for address in value:
            host, sep, port = address.rpartition(":")
            if not sep or not host or not port.isdigit() or not 0 <= int(port) <= 65535:
                raise ValueError(f"bind address must be host:port, got {address!r}")
        return value


class KeyboardOption(BaseModel):
    """Options for the keyboard-interactive authorization code flow.

    Attributes:
        auth_request_extra_params: Extra authorization request parameters,
            forwarded verbatim (e.g., {"audience": "...", "prompt": "consent"}).
    """

    auth_request_extra_params: dict[str, str] = Field(default_factory=dict)


class ROPCOption(BaseModel):
    """Options for the resource owner password credentials flow.

    Empty values are prompted for at flow time.

    Attributes:
        username: Resource owner username.
        password: Resource owner password.
    """

    username: str = ""
    password: SecretStr = SecretStr("")


GrantOption = Union[BrowserOption, KeyboardOption, ROPCOption]


class GrantOptionSet(BaseModel):
    """The configured grant flow. At most one field may be set.

    Attributes:
        browser: Browser-redirect authorization code flow.
        keyboard: Keyboard-interactive authorization code flow.
        ropc: Resource owner password credentials flow.
    """

    browser: BrowserOption | None = None
    keyboard: KeyboardOption | None = None
    ropc: ROPCOption | None = None

    @model_validator(mode="after")
    def check_single_grant(self) -> "GrantOptionSet":
        if len(self._populated()) > 1:
            raise ValueError("at most one of browser, keyboard, ropc may be set")
        return self

    def _populated(self) -> list[tuple[str, GrantOption]]:
        candidates: list[tuple[str, GrantOption | None]] = [
            (BROWSER_STRATEGY, self.browser),
            (KEYBOARD_STRATEGY, self.keyboard),
            (ROPC_STRATEGY, self.ropc),
        ]
        return [(name, option) for name, option in candidates if option is not None]

    def selected(self) -> tuple[str, GrantOption] | None:
        """Return (strategy name, option) of the configured flow.

        Returns:
            The single populated option, or None if nothing is configured.

        Raises:
            ConfigurationError: If more than one option is set.
        """
        populated = self._populated()
        if len(populated) > 1:
            names = ", ".join(name for name, _ in populated)
            raise ConfigurationError(f"more than one grant flow is configured: {names}")
        return populated[0] if populated else None


# =============================================================================
# Credential plugin configuration file
# =============================================================================


class CredentialPluginConfig(BaseModel):
    """Configuration file of the credential plugin.

    Attributes:
        provider: OIDC provider registration.
        grant: Configured grant flow.
        token_cache_dir: Directory for the encrypted-file token cache
            (default: <app dir>/cache).
        log_file: Optional JSONL file receiving warnings and errors.
        verbosity: 0 for progress messages, 1 or more for debug events.
    """

    provider: Provider
    grant: GrantOptionSet = Field(default_factory=GrantOptionSet)
    token_cache_dir: str | None = None
    log_file: str | None = None
    verbosity: int = Field(default=0, ge=0)

    def get_token_cache_dir(self) -> Path:
        """Token cache directory with ~ expanded."""
        if self.token_cache_dir:
            return Path(self.token_cache_dir).expanduser()
        return get_app_dir() / TOKEN_CACHE_DIRNAME

    @classmethod
    def load_from_file(cls, config_path: Path) -> "CredentialPluginConfig":
        """Load and validate configuration from a JSON file.

        Args:
            config_path: Path to the JSON config file.

        Returns:
            Validated configuration.

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        try:
            require_file_exists(config_path, file_type="configuration")
            return load_validated_json(config_path, cls, file_type="credential plugin")
        except (FileNotFoundError, ValueError) as e:
            raise ConfigurationError(str(e)) from e
