"""Kubernetes client-go credential plugin.

This module provides:
- GetToken: loads the cache, obtains a token set, writes the ExecCredential
- ExecCredentialWriter: writes the ExecCredential document to stdout
- create_get_token: wires GetToken from CredentialPluginConfig
"""

from kubecred.credentialplugin.factory import create_get_token
from kubecred.credentialplugin.get_token import GetToken, GetTokenInput
from kubecred.credentialplugin.writer import ExecCredential, ExecCredentialWriter

__all__ = [
    "ExecCredential",
    "ExecCredentialWriter",
    "GetToken",
    "GetTokenInput",
    "create_get_token",
]
