"""Token cache for issued token sets.

Provides two storage backends, keyed by Provider.cache_key():
1. KeyringTokenCache (primary): Uses OS keychain via keyring library
   - macOS: Keychain
   - Windows: Credential Locker
   - Linux: Secret Service (GNOME Keyring, KDE Wallet)

2. EncryptedFileTokenCache (fallback): Fernet-encrypted file per key
   - Used when keyring is unavailable
   - Key derived from machine-specific identifiers

Tokens are never stored in plaintext. Decoded claims are not persisted;
they are decoded again from the ID token on load.
"""

from __future__ import annotations

__all__ = [
    "EncryptedFileTokenCache",
    "KeyringTokenCache",
    "TokenCache",
    "create_token_cache",
    "is_keyring_available",
]

import base64
import hashlib
import logging
import platform
import socket
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from kubecred.constants import APP_NAME
from kubecred.exceptions import TokenCacheError
from kubecred.oidc.token import TokenSet
from kubecred.telemetry import get_system_logger
from kubecred.utils.file_helpers import set_secure_permissions

if TYPE_CHECKING:
    from cryptography.fernet import Fernet

# Service name for keyring storage
KEYRING_SERVICE = APP_NAME

# Suffix of encrypted cache files
ENCRYPTED_CACHE_SUFFIX = ".enc"


class TokenCache(ABC):
    """Abstract base class for token cache backends."""

    @abstractmethod
    def load(self, key: str) -> TokenSet | None:
        """Load the token set cached under key.

        Returns:
            TokenSet if found, None if nothing is cached.

        Raises:
            TokenCacheError: If the entry exists but cannot be read.
        """

    @abstractmethod
    def save(self, key: str, token_set: TokenSet) -> None:
        """Cache token_set under key, replacing any previous entry.

        Raises:
            TokenCacheError: If save fails.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the entry for key. Missing entries are not an error.

        Raises:
            TokenCacheError: If delete fails.
        """


class KeyringTokenCache(TokenCache):
    """Token cache in the OS keychain via keyring library."""

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    def load(self, key: str) -> TokenSet | None:
        import keyring

        try:
            data = keyring.get_password(self._service, key)
        except Exception as e:
            raise TokenCacheError(f"Failed to access keychain: {e}") from e

        if data is None:
            return None

        try:
            return TokenSet.from_json(data)
        except ValueError as e:
            raise TokenCacheError(f"Failed to parse cached token set (may be corrupted): {e}") from e

    def save(self, key: str, token_set: TokenSet) -> None:
        import keyring

        try:
            keyring.set_password(self._service, key, token_set.to_json())
        except Exception as e:
            raise TokenCacheError(f"Failed to save token set to keychain: {e}") from e

    def delete(self, key: str) -> None:
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self._service, key)
        except PasswordDeleteError:
            pass  # Nothing cached under this key
        except Exception as e:
            raise TokenCacheError(f"Failed to delete token set from keychain: {e}") from e


class EncryptedFileTokenCache(TokenCache):
    """Fallback token cache using one Fernet-encrypted file per key.

    Uses symmetric encryption with a key derived from machine-specific
    identifiers. This is less secure than keychain but works when
    keyring is unavailable.

    Key derivation uses:
    - Hostname
    - Machine ID (platform-specific)
    - Static salt for this application
    """

    def __init__(self, directory: Path) -> None:
        """Initialize encrypted file cache.

        Args:
            directory: Directory holding the cache files (created on save).
        """
        self._directory = directory
        self._key: bytes | None = None

    def _path(self, key: str) -> Path:
        # Keys are hex digests; reject anything that could escape the directory
        if not key or not all(c.isalnum() or c in "-_" for c in key):
            raise TokenCacheError("invalid token cache key")
        return self._directory / f"{key}{ENCRYPTED_CACHE_SUFFIX}"

    def _get_machine_id(self) -> str:
        """Get platform-specific machine identifier.

        Returns:
            String that's unique and stable for this machine.
        """
        system = platform.system()

        if system == "Darwin":
            try:
                result = subprocess.run(
                    ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
                    capture_output=True,
                    text=True,
                    timeout=5,
                )
                for line in result.stdout.split("\n"):
                    if "IOPlatformUUID" in line:
                        parts = line.split("=")
                        if len(parts) >= 2:
                            return parts[1].strip().strip('"')
            except (subprocess.SubprocessError, OSError):
                pass

        elif system == "Linux":
            for path in ["/etc/machine-id", "/var/lib/dbus/machine-id"]:
                try:
                    with open(path) as f:
                        return f.read().strip()
                except OSError:
                    continue

        # Fallback: hostname (less unique but always available)
        return socket.gethostname()

    def _derive_key(self) -> bytes:
        """Derive encryption key from machine-specific data.

        Returns:
            32-byte key, URL-safe base64 encoded for Fernet.
        """
        if self._key is not None:
            return self._key

        combined = f"{self._get_machine_id()}:{socket.gethostname()}:{APP_NAME}-token-cache"
        salt = f"{APP_NAME}-v1".encode()
        key = hashlib.pbkdf2_hmac("sha256", combined.encode(), salt, iterations=100_000, dklen=32)

        self._key = base64.urlsafe_b64encode(key)
        return self._key

    def _get_fernet(self) -> "Fernet":
        from cryptography.fernet import Fernet

        return Fernet(self._derive_key())

    def load(self, key: str) -> TokenSet | None:
        path = self._path(key)
        if not path.exists():
            return None

        from cryptography.fernet import InvalidToken

        try:
            decrypted = self._get_fernet().decrypt(path.read_bytes())
        except (InvalidToken, OSError) as e:
            raise TokenCacheError(
                f"Failed to decrypt token cache file (may be corrupted or key changed): {type(e).__name__}"
            ) from e

        try:
            return TokenSet.from_json(decrypted)
        except ValueError as e:
            raise TokenCacheError(f"Failed to parse cached token set (may be corrupted): {e}") from e

    def save(self, key: str, token_set: TokenSet) -> None:
        path = self._path(key)
        try:
            encrypted = self._get_fernet().encrypt(token_set.to_json().encode())

            self._directory.mkdir(parents=True, exist_ok=True)
            set_secure_permissions(self._directory, is_directory=True)

            path.write_bytes(encrypted)
            set_secure_permissions(path)
        except OSError as e:
            raise TokenCacheError(f"Failed to save encrypted token cache: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise TokenCacheError(f"Failed to delete encrypted token cache: {e}") from e


def is_keyring_available(logger: logging.Logger | None = None) -> bool:
    """Check if keyring backend is available and functional.

    Performs a test write/read/delete cycle to verify the keyring
    is working correctly.

    Returns:
        True if keyring can store/retrieve secrets.
    """
    logger = logger or get_system_logger()

    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        backend = keyring.get_keyring()
        if isinstance(backend, FailKeyring):
            logger.debug(
                {
                    "event": "keyring_unavailable",
                    "reason": "fail_backend",
                    "message": "Keyring using FailKeyring backend (no usable backend found)",
                }
            )
            return False

        test_service = f"{APP_NAME}-cache-test"
        test_user = "availability-check"
        keyring.set_password(test_service, test_user, "test")
        result = keyring.get_password(test_service, test_user)
        keyring.delete_password(test_service, test_user)

        return result == "test"

    except Exception as e:
        # DBus errors on Linux, locked keychains and the like: fall back to the file cache
        logger.debug(
            {
                "event": "keyring_unavailable",
                "reason": "keyring_error",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )
        return False


def create_token_cache(directory: Path) -> TokenCache:
    """Create the appropriate token cache backend.

    Prefers keychain storage when available, falls back to encrypted files.

    Args:
        directory: Directory for the encrypted-file fallback.

    Returns:
        TokenCache instance (KeyringTokenCache or EncryptedFileTokenCache).
    """
    if is_keyring_available():
        return KeyringTokenCache()
    return EncryptedFileTokenCache(directory)
