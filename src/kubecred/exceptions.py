"""Custom exceptions for kubecred.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Configuration Errors (fatal, caller must fix configuration):
    - ConfigurationError: No usable grant flow, invalid config file,
      OIDC client could not be constructed

Recoverable Errors (trigger fallback to re-authentication):
    - OIDCClientError: Raised by OIDC client implementations. A failed
      token refresh is logged and followed by an interactive grant.

Flow Errors (fatal to the current authentication attempt):
    - AuthenticationError: Base for failures inside a grant flow
    - SecurityParameterError: Random source failed
    - InputError: Could not read from the terminal
    - GrantFlowError: A grant flow failed at an identified stage
    - StateMismatchError: Redirect carried a foreign state (CSRF)
    - AuthorizationResponseError: Provider redirected back with an error

Messages never contain the PKCE verifier, passwords, client secrets or
token strings.

Usage:
    from kubecred.exceptions import ConfigurationError, GrantFlowError
"""

from __future__ import annotations

__all__ = [
    "AuthenticationError",
    "AuthorizationResponseError",
    "ConfigurationError",
    "GrantFlowError",
    "InputError",
    "KubecredError",
    "OIDCClientError",
    "SecurityParameterError",
    "StateMismatchError",
    "TokenCacheError",
]


class KubecredError(Exception):
    """Base exception for kubecred.

    Subclasses define specific failure types with distinct exit codes so the
    credential plugin process can report the category to operators.

    Attributes:
        exit_code: Process exit code.
        failure_type: Category string for logging.
    """

    exit_code: int = 1
    failure_type: str = "unknown"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(KubecredError):
    """Configuration is invalid or incomplete.

    Raised when:
    - No cached token is usable and no grant flow is configured
    - More than one grant flow is configured
    - The OIDC client could not be constructed (bad issuer, discovery failure)
    - Config file is missing, is not valid JSON or fails Pydantic validation
    - KUBERNETES_EXEC_INFO requests an unsupported apiVersion

    Exit code 16 indicates configuration failure.
    """

    exit_code = 16
    failure_type = "configuration_failure"


# =============================================================================
# OIDC client errors (raised by client implementations)
# =============================================================================


class OIDCClientError(KubecredError):
    """An OIDC client operation failed.

    Raised by OIDCClient implementations for token endpoint, refresh and
    discovery failures. The orchestrator treats it as recoverable during
    token refresh.
    """

    exit_code = 17
    failure_type = "oidc_client_failure"


# =============================================================================
# Flow Errors
# =============================================================================


class AuthenticationError(KubecredError):
    """Authentication failed - no token set could be acquired.

    Exit code 13 indicates authentication failure.
    """

    exit_code = 13
    failure_type = "authentication_failure"


class SecurityParameterError(AuthenticationError):
    """Could not generate a state, nonce or PKCE parameters."""

    failure_type = "security_parameter_failure"


class InputError(AuthenticationError):
    """Could not read input from the user."""

    failure_type = "input_failure"


class GrantFlowError(AuthenticationError):
    """A grant flow failed.

    The message identifies the failing stage, e.g.
    "could not exchange the authorization code: ...".

    Attributes:
        strategy: Name of the grant flow that failed, if known.
    """

    failure_type = "grant_flow_failure"

    def __init__(self, message: str, *, strategy: str | None = None) -> None:
        super().__init__(message)
        self.strategy = strategy


class StateMismatchError(AuthenticationError):
    """Authorization response carried a state that was not issued.

    This is a protocol violation (possible CSRF) and aborts the flow.
    """

    failure_type = "state_mismatch"


class AuthorizationResponseError(AuthenticationError):
    """Provider redirected back with an OAuth error instead of a code.

    Attributes:
        error: OAuth error code (e.g. "access_denied").
        error_description: Optional human-readable description.
    """

    failure_type = "authorization_response_error"

    def __init__(self, error: str, error_description: str | None = None) -> None:
        message = f"authorization error: {error}"
        if error_description:
            message = f"{message}: {error_description}"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


# =============================================================================
# Token cache
# =============================================================================


class TokenCacheError(KubecredError):
    """Token cache could not be read, written or deleted.

    Exit code 18 indicates token cache failure.
    """

    exit_code = 18
    failure_type = "token_cache_failure"
