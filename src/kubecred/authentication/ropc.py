"""Resource owner password credentials flow.

Submits username and password directly to the token endpoint. Values
missing from the option are prompted for; the password prompt does not
echo.
"""

from __future__ import annotations

__all__ = [
    "ROPC",
]

import asyncio
import logging
from typing import TYPE_CHECKING

from kubecred.constants import PASSWORD_PROMPT, USERNAME_PROMPT
from kubecred.exceptions import GrantFlowError, InputError, OIDCClientError
from kubecred.oidc.token import TokenSet
from kubecred.telemetry import get_system_logger

if TYPE_CHECKING:
    from kubecred.adapters.oidcclient import OIDCClient
    from kubecred.adapters.reader import Reader
    from kubecred.config import ROPCOption


class ROPC:
    """Password grant flow."""

    def __init__(self, reader: "Reader", logger: logging.Logger | None = None) -> None:
        self._reader = reader
        self._logger = logger or get_system_logger()

    async def acquire_token_set(self, option: "ROPCOption", client: "OIDCClient") -> TokenSet:
        username = option.username
        if not username:
            try:
                username = await asyncio.to_thread(self._reader.read_string, USERNAME_PROMPT)
            except InputError as e:
                raise GrantFlowError(f"could not read a username: {e}") from e

        password = option.password.get_secret_value()
        if not password:
            try:
                password = await asyncio.to_thread(self._reader.read_password, PASSWORD_PROMPT)
            except InputError as e:
                raise GrantFlowError(f"could not read a password: {e}") from e

        self._logger.debug(
            {
                "event": "ropc_token_requested",
                "message": f"Requesting a token set for user {username}",
            }
        )
        try:
            token_set = await client.get_token_by_ropc(username, password)
        except OIDCClientError as e:
            # Client errors may echo request parameters
            detail = str(e).replace(password, "********") if password else str(e)
            raise GrantFlowError(f"could not get a token by the password grant: {detail}") from e

        return TokenSet(
            id_token=token_set.id_token,
            refresh_token=token_set.refresh_token,
            id_token_claims=token_set.id_token_claims,
        )
