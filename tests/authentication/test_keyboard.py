"""Tests for the keyboard-interactive authorization code flow."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import patch

import pytest

from kubecred.authentication.authcode.keyboard import Keyboard
from kubecred.authentication.authentication import Authentication, Input
from kubecred.config import GrantOptionSet, KeyboardOption, Provider
from kubecred.exceptions import GrantFlowError, InputError, OIDCClientError, SecurityParameterError
from kubecred.oidc.pkce import PKCEMethod
from kubecred.oidc.token import TokenSet

OOB = "urn:ietf:wg:oauth:2.0:oob"


class TestKeyboardEndToEnd:
    """Orchestrator with the real keyboard flow and a fake client."""

    @pytest.mark.asyncio
    async def test_exchanges_entered_code_with_same_parameters(
        self,
        provider: Provider,
        fake_clock: Callable[[datetime], Any],
        fake_reader: Callable[..., Any],
        client_factory: Any,
        oidc_client: Any,
        token_expiry: datetime,
    ) -> None:
        """AUTHCODE is exchanged with the verifier and nonce of the URL."""
        # Arrange
        issued = TokenSet(id_token="YOUR_ID_TOKEN", refresh_token="YOUR_REFRESH_TOKEN")
        oidc_client.token_set = issued
        reader = fake_reader("AUTHCODE")
        authentication = Authentication(
            oidc_client_factory=client_factory,
            clock=fake_clock(token_expiry - timedelta(hours=1)),
            auth_code_keyboard=Keyboard(reader),
        )

        # Act
        output = await authentication.do(
            Input(provider=provider, grant_option_set=GrantOptionSet(keyboard=KeyboardOption()))
        )

        # Assert
        assert client_factory.providers == [provider]
        assert len(oidc_client.auth_code_url_calls) == 1
        assert len(oidc_client.exchange_calls) == 1
        url_input = oidc_client.auth_code_url_calls[0]
        exchange_input = oidc_client.exchange_calls[0]
        assert url_input.redirect_uri == OOB
        assert exchange_input.redirect_uri == OOB
        assert exchange_input.code == "AUTHCODE"
        assert exchange_input.pkce.verifier == url_input.pkce.verifier
        assert exchange_input.nonce == url_input.nonce
        assert url_input.pkce.method is PKCEMethod.S256
        assert reader.prompts == ["Enter code: "]
        assert output.token_set.id_token == "YOUR_ID_TOKEN"
        assert output.token_set.refresh_token == "YOUR_REFRESH_TOKEN"
        assert output.already_has_valid_id_token is False


class TestKeyboardFlow:
    """Tests for Keyboard.acquire_token_set."""

    @pytest.mark.asyncio
    async def test_forwards_extra_params(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        # Arrange
        option = KeyboardOption(auth_request_extra_params={"audience": "kubernetes", "prompt": "consent"})

        # Act
        await Keyboard(fake_reader("AUTHCODE")).acquire_token_set(option, oidc_client)

        # Assert
        assert oidc_client.auth_code_url_calls[0].auth_request_extra_params == {
            "audience": "kubernetes",
            "prompt": "consent",
        }

    @pytest.mark.asyncio
    async def test_consecutive_runs_use_fresh_parameters(
        self, fake_reader: Callable[..., Any], oidc_client: Any
    ) -> None:
        """State, nonce and verifier are never reused across attempts."""
        # Arrange
        flow = Keyboard(fake_reader("CODE1", "CODE2"))

        # Act
        await flow.acquire_token_set(KeyboardOption(), oidc_client)
        await flow.acquire_token_set(KeyboardOption(), oidc_client)

        # Assert
        first, second = oidc_client.auth_code_url_calls
        assert first.state != second.state
        assert first.nonce != second.nonce
        assert first.pkce.verifier != second.pkce.verifier

    @pytest.mark.asyncio
    async def test_returns_new_token_set(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        token_set = await Keyboard(fake_reader("AUTHCODE")).acquire_token_set(KeyboardOption(), oidc_client)

        assert token_set == oidc_client.token_set
        assert token_set is not oidc_client.token_set

    @pytest.mark.asyncio
    async def test_logs_authorization_url(
        self, fake_reader: Callable[..., Any], oidc_client: Any, caplog: pytest.LogCaptureFixture
    ) -> None:
        """The URL is shown to the user, not opened."""
        # Arrange
        logger = logging.getLogger("test.keyboard")
        logger.setLevel(logging.DEBUG)

        # Act
        with caplog.at_level(logging.INFO, logger="test.keyboard"):
            await Keyboard(fake_reader("AUTHCODE"), logger=logger).acquire_token_set(KeyboardOption(), oidc_client)

        # Assert
        messages = [r.msg for r in caplog.records if isinstance(r.msg, dict)]
        shown = [m for m in messages if m.get("event") == "authorization_url_shown"]
        assert len(shown) == 1
        assert shown[0]["message"].startswith("Please visit the following URL in your browser: https://issuer")


class TestKeyboardStageErrors:
    """Each failing stage is named in the error."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("target", "stage"),
        [
            ("kubecred.authentication.authcode.keyboard.new_state", "could not generate a state"),
            ("kubecred.authentication.authcode.keyboard.new_nonce", "could not generate a nonce"),
            ("kubecred.authentication.authcode.keyboard.new_pkce", "could not generate PKCE parameters"),
        ],
    )
    async def test_security_parameter_failure(
        self, fake_reader: Callable[..., Any], oidc_client: Any, target: str, stage: str
    ) -> None:
        # Arrange
        flow = Keyboard(fake_reader("AUTHCODE"))

        # Act / Assert
        with patch(target, side_effect=SecurityParameterError("random source failed")):
            with pytest.raises(GrantFlowError, match=f"^{stage}: random source failed$"):
                await flow.acquire_token_set(KeyboardOption(), oidc_client)
        assert oidc_client.exchange_calls == []

    @pytest.mark.asyncio
    async def test_no_supported_pkce_method(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        oidc_client.pkce_methods = set()

        with pytest.raises(GrantFlowError, match="^could not generate PKCE parameters"):
            await Keyboard(fake_reader("AUTHCODE")).acquire_token_set(KeyboardOption(), oidc_client)

        assert oidc_client.auth_code_url_calls == []

    @pytest.mark.asyncio
    async def test_authorization_url_failure(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        """Nothing is read or exchanged when the URL cannot be built."""
        # Arrange
        reader = fake_reader("AUTHCODE")
        oidc_client.errors["get_auth_code_url"] = OIDCClientError("invalid authorization endpoint")

        # Act / Assert
        with pytest.raises(
            GrantFlowError, match="^could not build the authorization URL: invalid authorization endpoint$"
        ):
            await Keyboard(reader).acquire_token_set(KeyboardOption(), oidc_client)
        assert reader.prompts == []
        assert oidc_client.exchange_calls == []

    @pytest.mark.asyncio
    async def test_read_failure(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        # Arrange
        reader = fake_reader(error=InputError("input was closed"))

        # Act / Assert
        with pytest.raises(GrantFlowError, match="^could not read an authorization code: input was closed$"):
            await Keyboard(reader).acquire_token_set(KeyboardOption(), oidc_client)
        assert oidc_client.exchange_calls == []

    @pytest.mark.asyncio
    async def test_exchange_failure(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        # Arrange
        oidc_client.errors["exchange_auth_code"] = OIDCClientError("invalid_grant")

        # Act / Assert
        with pytest.raises(GrantFlowError, match="^could not exchange the authorization code: invalid_grant$"):
            await Keyboard(fake_reader("BADCODE")).acquire_token_set(KeyboardOption(), oidc_client)

    @pytest.mark.asyncio
    async def test_error_does_not_leak_verifier(self, fake_reader: Callable[..., Any], oidc_client: Any) -> None:
        oidc_client.errors["exchange_auth_code"] = OIDCClientError("invalid_grant")

        with pytest.raises(GrantFlowError) as exc_info:
            await Keyboard(fake_reader("AUTHCODE")).acquire_token_set(KeyboardOption(), oidc_client)

        verifier = oidc_client.exchange_calls[0].pkce.verifier
        assert verifier not in str(exc_info.value)
