"""ExecCredential writer for the Kubernetes client-go credential plugin protocol.

kubectl runs the plugin and parses an ExecCredential JSON document from its
stdout. The apiVersion must match the one kubectl announced in the
KUBERNETES_EXEC_INFO environment variable.
"""

from __future__ import annotations

__all__ = [
    "ExecCredential",
    "ExecCredentialSpec",
    "ExecCredentialStatus",
    "ExecCredentialWriter",
]

import json
import os
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Literal, TextIO

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from kubecred.constants import (
    DEFAULT_EXEC_CREDENTIAL_API_VERSION,
    EXEC_INFO_ENV,
    SUPPORTED_EXEC_CREDENTIAL_API_VERSIONS,
)
from kubecred.exceptions import ConfigurationError
from kubecred.oidc.token import TokenSet, decode_id_token_claims


class ExecCredentialSpec(BaseModel):
    """Spec part of an ExecCredential."""

    interactive: bool = False


class ExecCredentialStatus(BaseModel):
    """Status part of an ExecCredential, carrying the bearer token."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(repr=False)
    expiration_timestamp: datetime = Field(alias="expirationTimestamp")

    @field_serializer("expiration_timestamp")
    def serialize_expiration_timestamp(self, value: datetime) -> str:
        # RFC 3339 in UTC, second precision
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ExecCredential(BaseModel):
    """client.authentication.k8s.io ExecCredential document."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["ExecCredential"] = "ExecCredential"
    api_version: str = Field(default=DEFAULT_EXEC_CREDENTIAL_API_VERSION, alias="apiVersion")
    spec: ExecCredentialSpec = Field(default_factory=ExecCredentialSpec)
    status: ExecCredentialStatus


class ExecCredentialWriter:
    """Writes the ExecCredential for a token set.

    Args:
        stream: Output stream (default: sys.stdout).
        environ: Environment to read KUBERNETES_EXEC_INFO from (default: os.environ).
    """

    def __init__(self, stream: TextIO | None = None, environ: Mapping[str, str] | None = None) -> None:
        self._stream = stream
        self._environ = environ

    def api_version(self) -> str:
        """Return the apiVersion kubectl expects.

        Raises:
            ConfigurationError: If KUBERNETES_EXEC_INFO is not valid JSON or
                requests an unsupported apiVersion.
        """
        environ = self._environ if self._environ is not None else os.environ
        exec_info = environ.get(EXEC_INFO_ENV)
        if not exec_info:
            return DEFAULT_EXEC_CREDENTIAL_API_VERSION

        try:
            api_version = json.loads(exec_info).get("apiVersion")
        except (json.JSONDecodeError, AttributeError) as e:
            raise ConfigurationError(f"invalid {EXEC_INFO_ENV}: {e}") from e

        if not api_version:
            return DEFAULT_EXEC_CREDENTIAL_API_VERSION
        if api_version not in SUPPORTED_EXEC_CREDENTIAL_API_VERSIONS:
            raise ConfigurationError(f"unsupported ExecCredential apiVersion: {api_version}")
        return str(api_version)

    def write(self, token_set: TokenSet) -> None:
        """Write the ExecCredential for token_set.

        Raises:
            ConfigurationError: If the requested apiVersion is not supported.
            AuthenticationError: If the ID token cannot be decoded.
        """
        claims = token_set.id_token_claims or decode_id_token_claims(token_set.id_token)
        credential = ExecCredential(
            api_version=self.api_version(),
            status=ExecCredentialStatus(
                token=token_set.id_token,
                expiration_timestamp=claims.expiry,
            ),
        )

        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(credential.model_dump_json(by_alias=True))
        stream.write("\n")
        stream.flush()
