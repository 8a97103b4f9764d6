"""
Unit tests for token acquisition and single-flight caching.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from fabric_router.exceptions import ConfigurationError, TokenAcquisitionError
from fabric_router.integration.token_cache import (
    AccessToken,
    TokenCache,
    build_token_cache,
    scope_to_resource,
)
from fabric_router.model.registry import AuthSettings

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
SCOPE = "https://analysis.windows.net/powerbi/api/.default"


class MutableClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class CountingProvider:
    """Async provider that yields to the loop before issuing a token."""

    def __init__(self, lifetime: timedelta = timedelta(hours=1), clock=None):
        self.calls = 0
        self.lifetime = lifetime
        self.clock = clock or (lambda: NOW)

    async def __call__(self) -> AccessToken:
        self.calls += 1
        await asyncio.sleep(0)
        return AccessToken(f"token-{self.calls}", self.clock() + self.lifetime)


class TestAccessToken:
    """Test building tokens from MSAL results."""

    def test_from_msal_result(self):
        """Test expiry computed from expires_in."""
        token = AccessToken.from_msal_result({"access_token": "abc", "expires_in": 600}, now=NOW)
        assert token.token == "abc"
        assert token.expires_on == NOW + timedelta(seconds=600)

    def test_from_msal_result_default_lifetime(self):
        """Test that a missing expires_in defaults to one hour."""
        token = AccessToken.from_msal_result({"access_token": "abc"}, now=NOW)
        assert token.expires_on == NOW + timedelta(hours=1)

    def test_from_msal_error(self):
        """Test that an MSAL error result raises."""
        with pytest.raises(TokenAcquisitionError, match="invalid_client"):
            AccessToken.from_msal_result(
                {"error": "invalid_client", "error_description": "bad secret"}
            )


class TestTokenCache:
    """Test caching, refresh and single-flight behaviour."""

    @pytest.mark.asyncio
    async def test_token_reused_while_fresh(self):
        """Test that a fresh token is served from cache."""
        provider = CountingProvider()
        cache = TokenCache(provider, now=lambda: NOW)

        assert await cache.get() == "token-1"
        assert await cache.get() == "token-1"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_inside_margin(self):
        """Test that a token within the refresh margin is replaced."""
        clock = MutableClock(NOW)
        provider = CountingProvider(clock=clock)
        cache = TokenCache(provider, refresh_margin=timedelta(minutes=5), now=clock)

        assert await cache.get() == "token-1"
        clock.now = NOW + timedelta(minutes=54)
        assert await cache.get() == "token-1"
        clock.now = NOW + timedelta(minutes=56)
        assert await cache.get() == "token-2"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        """Test single-flight: concurrent stale reads trigger one acquisition."""
        provider = CountingProvider()
        cache = TokenCache(provider, now=lambda: NOW)

        tokens = await asyncio.gather(*(cache.get() for _ in range(10)))

        assert provider.calls == 1
        assert set(tokens) == {"token-1"}

    @pytest.mark.asyncio
    async def test_sync_provider(self):
        """Test that sync providers are supported."""
        cache = TokenCache(lambda: AccessToken("sync", NOW + timedelta(hours=1)), now=lambda: NOW)
        assert await cache.get() == "sync"

    @pytest.mark.asyncio
    async def test_callable_as_token_provider(self):
        """Test that the cache itself is an async token provider."""
        cache = TokenCache(CountingProvider(), now=lambda: NOW)
        assert await cache() == "token-1"

    @pytest.mark.asyncio
    async def test_invalidate(self):
        """Test that invalidation forces a new acquisition."""
        provider = CountingProvider()
        cache = TokenCache(provider, now=lambda: NOW)

        await cache.get()
        cache.invalidate()

        assert await cache.get() == "token-2"

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self):
        """Test that provider exceptions become TokenAcquisitionError."""

        async def failing():
            raise RuntimeError("network down")

        cache = TokenCache(failing, cache_key="tenant|client", now=lambda: NOW)

        with pytest.raises(TokenAcquisitionError, match="network down"):
            await cache.get()

    @pytest.mark.asyncio
    async def test_failure_not_cached(self):
        """Test that a failed acquisition is retried on the next call."""
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise TokenAcquisitionError("first call fails")
            return AccessToken("ok", NOW + timedelta(hours=1))

        cache = TokenCache(flaky, now=lambda: NOW)

        with pytest.raises(TokenAcquisitionError):
            await cache.get()
        assert await cache.get() == "ok"


class TestBuildTokenCache:
    """Test credential provider selection."""

    def test_scope_to_resource(self):
        """Test stripping the .default suffix."""
        assert scope_to_resource(SCOPE) == "https://analysis.windows.net/powerbi/api"
        assert scope_to_resource("https://host") == "https://host"

    @patch("fabric_router.integration.token_cache.msal")
    def test_managed_identity(self, mock_msal):
        """Test that managed identity is used when configured."""
        cache = build_token_cache(AuthSettings(use_managed_identity=True), [SCOPE])

        mock_msal.ManagedIdentityClient.assert_called_once()
        mock_msal.SystemAssignedManagedIdentity.assert_called_once()
        assert cache.cache_key.startswith("managed-identity|system|")

    @patch("fabric_router.integration.token_cache.msal")
    def test_user_assigned_managed_identity(self, mock_msal):
        """Test that a client id selects a user-assigned identity."""
        build_token_cache(AuthSettings(use_managed_identity=True, client_id="mi-client"), [SCOPE])

        mock_msal.UserAssignedManagedIdentity.assert_called_once_with(client_id="mi-client")

    @patch("fabric_router.integration.token_cache.msal")
    def test_client_credentials(self, mock_msal):
        """Test the confidential client flow."""
        app = MagicMock()
        app.acquire_token_for_client.return_value = {"access_token": "cc", "expires_in": 3600}
        mock_msal.ConfidentialClientApplication.return_value = app

        cache = build_token_cache(
            AuthSettings(use_managed_identity=False, tenant_id="t", client_id="c"),
            [SCOPE],
            client_secret="s",
        )

        _, kwargs = mock_msal.ConfidentialClientApplication.call_args
        assert kwargs["authority"] == "https://login.microsoftonline.com/t"
        assert kwargs["client_credential"] == "s"
        assert cache.cache_key == f"t|c|{SCOPE}"

    @pytest.mark.asyncio
    @patch("fabric_router.integration.token_cache.msal")
    async def test_client_credentials_token(self, mock_msal):
        """Test that the cache returns the MSAL-issued token."""
        app = MagicMock()
        app.acquire_token_for_client.return_value = {"access_token": "cc", "expires_in": 3600}
        mock_msal.ConfidentialClientApplication.return_value = app

        cache = build_token_cache(
            AuthSettings(use_managed_identity=False, tenant_id="t", client_id="c"),
            [SCOPE],
            client_secret="s",
        )

        assert await cache.get() == "cc"
        app.acquire_token_for_client.assert_called_once_with(scopes=[SCOPE])

    def test_client_credentials_incomplete(self):
        """Test that missing secret is a configuration error."""
        with pytest.raises(ConfigurationError, match="AZURE_CLIENT_SECRET"):
            build_token_cache(
                AuthSettings(use_managed_identity=False, tenant_id="t", client_id="c"), [SCOPE]
            )
