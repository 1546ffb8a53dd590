"""Tests for the resource owner password credentials flow."""

from collections.abc import Callable
from typing import Any

import pytest

from kubecred.authentication.ropc import ROPC
from kubecred.config import ROPCOption
from kubecred.exceptions import GrantFlowError, InputError, OIDCClientError


class TestROPC:
    """Tests for ROPC.acquire_token_set."""

    @pytest.mark.asyncio
    async def test_uses_configured_credentials(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        # Arrange
        reader = fake_reader()

        # Act
        token_set = await ROPC(reader).acquire_token_set(ROPCOption(username="USER", password="PASS"), oidc_client)

        # Assert
        assert oidc_client.ropc_calls == [("USER", "PASS")]
        assert token_set == oidc_client.token_set
        assert reader.prompts == []
        assert reader.password_prompts == []

    @pytest.mark.asyncio
    async def test_prompts_for_missing_values(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        """Username is read with echo, password without."""
        # Arrange
        reader = fake_reader("USER", "PASS")

        # Act
        await ROPC(reader).acquire_token_set(ROPCOption(), oidc_client)

        # Assert
        assert reader.prompts == ["Username: "]
        assert reader.password_prompts == ["Password: "]
        assert oidc_client.ropc_calls == [("USER", "PASS")]

    @pytest.mark.asyncio
    async def test_prompts_only_for_password(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        reader = fake_reader("PASS")

        await ROPC(reader).acquire_token_set(ROPCOption(username="USER"), oidc_client)

        assert reader.prompts == []
        assert oidc_client.ropc_calls == [("USER", "PASS")]

    @pytest.mark.asyncio
    async def test_no_security_parameters(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        await ROPC(fake_reader()).acquire_token_set(ROPCOption(username="USER", password="PASS"), oidc_client)

        assert oidc_client.auth_code_url_calls == []
        assert oidc_client.exchange_calls == []

    @pytest.mark.asyncio
    async def test_read_failure(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        reader = fake_reader(error=InputError("input was closed"))

        with pytest.raises(GrantFlowError, match="^could not read a username"):
            await ROPC(reader).acquire_token_set(ROPCOption(), oidc_client)

    @pytest.mark.asyncio
    async def test_error_does_not_contain_password(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        """Client errors echoing the password are masked."""
        # Arrange
        oidc_client.errors["get_token_by_ropc"] = OIDCClientError("invalid_grant for password=hunter2")

        # Act
        with pytest.raises(GrantFlowError) as exc_info:
            await ROPC(fake_reader()).acquire_token_set(ROPCOption(username="USER", password="hunter2"), oidc_client)

        # Assert
        assert "hunter2" not in str(exc_info.value)
        assert str(exc_info.value).startswith("could not get a token by the password grant: invalid_grant")
