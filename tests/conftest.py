"""Shared fixtures: fake capabilities, ID token factory, provider."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import jwt
import pytest

from kubecred.adapters.oidcclient import AuthCodeURLInput, ExchangeAuthCodeInput, GetTokenByAuthCodeInput
from kubecred.config import Provider
from kubecred.oidc.token import TokenSet

# HS256 signing key for test tokens; claims are read without verification
_TEST_SIGNING_KEY = "kubecred-test-signing-key-0123456789abcdef"


# ---------------------------------------------------------------------------
# Fake capabilities
# ---------------------------------------------------------------------------


class FakeClock:
    """Clock returning a fixed instant."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class FakeOIDCClient:
    """OIDC client recording every call.

    Network calls return token_set, or raise the exception registered in
    errors under the method name.
    """

    def __init__(self, token_set: TokenSet | None = None) -> None:
        self.pkce_methods: set[str] = {"S256", "plain"}
        self.token_set = token_set or TokenSet(id_token="ISSUED_ID_TOKEN", refresh_token="ISSUED_REFRESH_TOKEN")
        self.errors: dict[str, Exception] = {}
        self.auth_code_delay: float = 0.0
        self.ready_url = "http://127.0.0.1:8000/"

        self.auth_code_url_calls: list[AuthCodeURLInput] = []
        self.exchange_calls: list[ExchangeAuthCodeInput] = []
        self.refresh_calls: list[str] = []
        self.ropc_calls: list[tuple[str, str]] = []
        self.auth_code_calls: list[GetTokenByAuthCodeInput] = []

    def _result(self, method: str) -> TokenSet:
        if method in self.errors:
            raise self.errors[method]
        return self.token_set

    def supported_pkce_methods(self) -> set[str]:
        return set(self.pkce_methods)

    def get_auth_code_url(self, params: AuthCodeURLInput) -> str:
        self.auth_code_url_calls.append(params)
        if "get_auth_code_url" in self.errors:
            raise self.errors["get_auth_code_url"]
        return f"https://issuer.example.com/auth?redirect_uri={params.redirect_uri}"

    async def exchange_auth_code(self, params: ExchangeAuthCodeInput) -> TokenSet:
        self.exchange_calls.append(params)
        return self._result("exchange_auth_code")

    async def refresh(self, refresh_token: str) -> TokenSet:
        self.refresh_calls.append(refresh_token)
        return self._result("refresh")

    async def get_token_by_ropc(self, username: str, password: str) -> TokenSet:
        self.ropc_calls.append((username, password))
        return self._result("get_token_by_ropc")

    async def get_token_by_auth_code(
        self, params: GetTokenByAuthCodeInput, ready: "asyncio.Future[str]"
    ) -> TokenSet:
        self.auth_code_calls.append(params)
        ready.set_result(self.ready_url)
        if self.auth_code_delay:
            await asyncio.sleep(self.auth_code_delay)
        return self._result("get_token_by_auth_code")


class FakeOIDCClientFactory:
    """Factory handing out one client, or raising error."""

    def __init__(self, client: FakeOIDCClient, error: Exception | None = None) -> None:
        self.client = client
        self.error = error
        self.providers: list[Provider] = []

    async def new(self, provider: Provider) -> FakeOIDCClient:
        self.providers.append(provider)
        if self.error is not None:
            raise self.error
        return self.client


class FakeReader:
    """Reader returning queued answers and recording prompts."""

    def __init__(self, *answers: str, error: Exception | None = None) -> None:
        self.answers = list(answers)
        self.error = error
        self.prompts: list[str] = []
        self.password_prompts: list[str] = []

    def read_string(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answers.pop(0)

    def read_password(self, prompt: str) -> str:
        self.password_prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answers.pop(0)


class FakeBrowser:
    """Browser recording opened URLs."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.opened: list[str] = []

    def open(self, url: str) -> None:
        self.opened.append(url)
        if self.error is not None:
            raise self.error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_id_token() -> Callable[..., str]:
    """Build an HS256 ID token expiring at the given instant."""

    def _make(expiry: datetime, subject: str = "YOUR_SUBJECT", **claims: Any) -> str:
        payload = {"iss": "https://issuer.example.com", "sub": subject, "exp": int(expiry.timestamp()), **claims}
        return jwt.encode(payload, _TEST_SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def token_expiry() -> datetime:
    """Expiry used by cached ID tokens in tests."""
    return datetime(2020, 1, 2, 4, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def provider() -> Provider:
    """Provider registration used across tests."""
    return Provider(issuer_url="https://issuer.example.com", client_id="CID", client_secret="SECRET")


@pytest.fixture
def fake_clock() -> Callable[[datetime], FakeClock]:
    return FakeClock


@pytest.fixture
def oidc_client() -> FakeOIDCClient:
    return FakeOIDCClient()


@pytest.fixture
def client_factory(oidc_client: FakeOIDCClient) -> FakeOIDCClientFactory:
    return FakeOIDCClientFactory(oidc_client)


@pytest.fixture
def fake_reader() -> Callable[..., FakeReader]:
    return FakeReader


@pytest.fixture
def fake_browser() -> Callable[..., FakeBrowser]:
    return FakeBrowser
