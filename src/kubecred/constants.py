"""Application-wide constants for kubecred.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

from datetime import timedelta

__all__ = [
    # Application identity
    "APP_NAME",
    # Security parameters
    "STATE_BYTES",
    "NONCE_BYTES",
    "PKCE_VERIFIER_BYTES",
    # Token validity
    "ID_TOKEN_EXPIRY_MARGIN",
    # Keyboard flow
    "OOB_REDIRECT_URI",
    "KEYBOARD_PROMPT",
    # ROPC flow
    "USERNAME_PROMPT",
    "PASSWORD_PROMPT",
    # Browser flow
    "DEFAULT_BIND_ADDRESSES",
    "DEFAULT_AUTHENTICATION_TIMEOUT_SECONDS",
    "LOOPBACK_STARTUP_TIMEOUT_SECONDS",
    "LOOPBACK_POLL_INTERVAL_SECONDS",
    # Token cache
    "TOKEN_CACHE_DIRNAME",
    # Credential plugin
    "EXEC_INFO_ENV",
    "DEFAULT_EXEC_CREDENTIAL_API_VERSION",
    "SUPPORTED_EXEC_CREDENTIAL_API_VERSIONS",
]

# =============================================================================
# Application identity
# =============================================================================

APP_NAME = "kubecred"

# =============================================================================
# Security parameters
# =============================================================================

# 32 random bytes = 256 bits, encoded to 43 URL-safe characters
STATE_BYTES = 32
NONCE_BYTES = 32

# RFC 7636 requires a verifier of 43-128 characters
PKCE_VERIFIER_BYTES = 32

# =============================================================================
# Token validity
# =============================================================================

# Cached ID token must outlive now + margin to be reused
ID_TOKEN_EXPIRY_MARGIN = timedelta(seconds=10)

# =============================================================================
# Keyboard-interactive flow
# =============================================================================

# Out-of-band redirect: the provider displays the code instead of redirecting
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
KEYBOARD_PROMPT = "Enter code: "

# =============================================================================
# Resource owner password credentials flow
# =============================================================================

USERNAME_PROMPT = "Username: "
PASSWORD_PROMPT = "Password: "

# =============================================================================
# Browser-redirect flow
# =============================================================================

DEFAULT_BIND_ADDRESSES = ["127.0.0.1:8000", "127.0.0.1:18000"]
DEFAULT_AUTHENTICATION_TIMEOUT_SECONDS = 180.0

# How long to wait for the loopback listener to accept connections
LOOPBACK_STARTUP_TIMEOUT_SECONDS = 5.0
LOOPBACK_POLL_INTERVAL_SECONDS = 0.01

# =============================================================================
# Token cache
# =============================================================================

TOKEN_CACHE_DIRNAME = "cache"

# =============================================================================
# Kubernetes credential plugin
# =============================================================================

# Set by kubectl for exec plugins, carries the expected apiVersion
EXEC_INFO_ENV = "KUBERNETES_EXEC_INFO"
DEFAULT_EXEC_CREDENTIAL_API_VERSION = "client.authentication.k8s.io/v1beta1"
SUPPORTED_EXEC_CREDENTIAL_API_VERSIONS = frozenset(
    {
        "client.authentication.k8s.io/v1beta1",
        "client.authentication.k8s.io/v1",
    }
)
