"""Tests for the GetToken use case."""

import io
import json
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

from kubecred.adapters.tokencache import TokenCache
from kubecred.authentication.authentication import Authentication
from kubecred.authentication.ropc import ROPC
from kubecred.config import GrantOptionSet, Provider, ROPCOption
from kubecred.credentialplugin.get_token import GetToken, GetTokenInput
from kubecred.credentialplugin.writer import ExecCredentialWriter
from kubecred.exceptions import TokenCacheError
from kubecred.oidc.token import TokenSet


class MemoryTokenCache(TokenCache):
    """In-memory cache with injectable failures."""

    def __init__(self) -> None:
        self.entries: dict[str, TokenSet] = {}
        self.load_error: Exception | None = None
        self.save_error: Exception | None = None
        self.saves = 0

    def load(self, key: str) -> TokenSet | None:
        if self.load_error is not None:
            raise self.load_error
        return self.entries.get(key)

    def save(self, key: str, token_set: TokenSet) -> None:
        self.saves += 1
        if self.save_error is not None:
            raise self.save_error
        self.entries[key] = token_set

    def delete(self, key: str) -> None:
        self.entries.pop(key, None)


class Harness:
    """GetToken wired to fakes."""

    def __init__(self, client_factory: Any, clock: Any) -> None:
        self.cache = MemoryTokenCache()
        self.stream = io.StringIO()
        self.use_case = GetToken(
            authentication=Authentication(oidc_client_factory=client_factory, clock=clock, ropc=ROPC(MagicMock())),
            token_cache=self.cache,
            writer=ExecCredentialWriter(self.stream, environ={}),
        )

    def credential(self) -> dict:
        return json.loads(self.stream.getvalue())


@pytest.fixture
def issued(make_id_token: Callable[..., str], token_expiry: datetime) -> TokenSet:
    return TokenSet(id_token=make_id_token(token_expiry + timedelta(days=1)), refresh_token="NEW_REFRESH_TOKEN")


@pytest.fixture
def harness(client_factory: Any, fake_clock: Callable[[datetime], Any], token_expiry: datetime) -> Harness:
    """Clock one hour after token_expiry."""
    return Harness(client_factory, fake_clock(token_expiry + timedelta(hours=1)))


class TestGetToken:
    """Tests for GetToken.do."""

    @pytest.mark.asyncio
    async def test_valid_cache_is_written_without_saving(
        self,
        provider: Provider,
        make_id_token: Callable[..., str],
        token_expiry: datetime,
        client_factory: Any,
        fake_clock: Callable[[datetime], Any],
    ) -> None:
        # Arrange
        harness = Harness(client_factory, fake_clock(token_expiry - timedelta(hours=1)))
        cached = TokenSet(id_token=make_id_token(token_expiry), refresh_token="YOUR_REFRESH_TOKEN")
        harness.cache.entries[provider.cache_key()] = cached

        # Act
        await harness.use_case.do(GetTokenInput(provider=provider))

        # Assert
        assert harness.cache.saves == 0
        assert harness.credential()["status"]["token"] == cached.id_token
        assert client_factory.providers == []

    @pytest.mark.asyncio
    async def test_refreshed_token_is_saved_and_written(
        self,
        provider: Provider,
        harness: Harness,
        make_id_token: Callable[..., str],
        token_expiry: datetime,
        oidc_client: Any,
        issued: TokenSet,
    ) -> None:
        # Arrange
        oidc_client.token_set = issued
        harness.cache.entries[provider.cache_key()] = TokenSet(
            id_token=make_id_token(token_expiry), refresh_token="VALID_REFRESH_TOKEN"
        )

        # Act
        await harness.use_case.do(GetTokenInput(provider=provider))

        # Assert
        assert oidc_client.refresh_calls == ["VALID_REFRESH_TOKEN"]
        assert harness.cache.entries[provider.cache_key()] == issued
        assert harness.credential()["status"] == {
            "token": issued.id_token,
            "expirationTimestamp": "2020-01-03T04:04:05Z",
        }

    @pytest.mark.asyncio
    async def test_unreadable_cache_is_a_miss(
        self, provider: Provider, harness: Harness, oidc_client: Any, issued: TokenSet
    ) -> None:
        """Load errors lead to re-authentication instead of failure."""
        # Arrange
        oidc_client.token_set = issued
        harness.cache.load_error = TokenCacheError("Failed to decrypt token cache file")

        # Act
        await harness.use_case.do(
            GetTokenInput(provider=provider, grant_option_set=GrantOptionSet(ropc=ROPCOption(username="U", password="P")))
        )

        # Assert
        assert harness.credential()["status"]["token"] == issued.id_token

    @pytest.mark.asyncio
    async def test_save_failure_is_fatal(
        self,
        provider: Provider,
        harness: Harness,
        make_id_token: Callable[..., str],
        token_expiry: datetime,
        oidc_client: Any,
        issued: TokenSet,
    ) -> None:
        # Arrange
        oidc_client.token_set = issued
        harness.cache.entries[provider.cache_key()] = TokenSet(
            id_token=make_id_token(token_expiry), refresh_token="VALID_REFRESH_TOKEN"
        )
        harness.cache.save_error = TokenCacheError("disk full")

        # Act / Assert
        with pytest.raises(TokenCacheError, match="^could not write the token cache: disk full$"):
            await harness.use_case.do(GetTokenInput(provider=provider))
        assert harness.stream.getvalue() == ""

    @pytest.mark.asyncio
    async def test_force_refresh(
        self,
        provider: Provider,
        make_id_token: Callable[..., str],
        token_expiry: datetime,
        client_factory: Any,
        oidc_client: Any,
        fake_clock: Callable[[datetime], Any],
        issued: TokenSet,
    ) -> None:
        # Arrange
        oidc_client.token_set = issued
        harness = Harness(client_factory, fake_clock(token_expiry - timedelta(hours=1)))
        harness.cache.entries[provider.cache_key()] = TokenSet(
            id_token=make_id_token(token_expiry), refresh_token="VALID_REFRESH_TOKEN"
        )

        # Act
        await harness.use_case.do(GetTokenInput(provider=provider, force_refresh=True))

        # Assert
        assert oidc_client.refresh_calls == ["VALID_REFRESH_TOKEN"]
        assert harness.cache.saves == 1
