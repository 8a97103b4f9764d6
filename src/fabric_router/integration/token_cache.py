"""
Bearer token acquisition and caching for downstream agent calls.

Tokens are issued by MSAL, either for a confidential client (client id +
secret) or for the host's managed identity. ``TokenCache`` holds one token
per credential identity and refreshes it when the remaining validity drops
below a safety margin. Concurrent callers that observe a stale token share
a single refresh.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import msal
import requests

from fabric_router.exceptions import ConfigurationError, TokenAcquisitionError
from fabric_router.model.registry import AuthSettings

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN = timedelta(minutes=5)


class AccessToken:
    """An issued bearer token and its absolute expiry."""

    def __init__(self, token: str, expires_on: datetime):
        self.token = token
        self.expires_on = expires_on

    @classmethod
    def from_msal_result(cls, result: dict, now: Optional[datetime] = None) -> "AccessToken":
        """Build a token from an MSAL ``acquire_token_*`` result dict."""
        if "access_token" not in result:
            error = result.get("error", "unknown_error")
            description = result.get("error_description", "")
            raise TokenAcquisitionError(f"{error}: {description}".rstrip(": "))
        issued_at = now or datetime.now(timezone.utc)
        expires_in = int(result.get("expires_in", 3600))
        return cls(result["access_token"], issued_at + timedelta(seconds=expires_in))


TokenProvider = Callable[[], Union[AccessToken, Awaitable[AccessToken]]]


class TokenCache:
    """
    Single-flight cache for one credential identity.

    Args:
        provider: Sync or async callable returning a fresh ``AccessToken``.
            Sync providers run in a worker thread.
        cache_key: Identity of the credential (tenant, client and scopes)
        refresh_margin: Reacquire once remaining validity falls below this
        now: Clock returning an aware UTC datetime
    """

    def __init__(
        self,
        provider: TokenProvider,
        cache_key: str = "default",
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._provider = provider
        self.cache_key = cache_key
        self.refresh_margin = refresh_margin
        self._now = now
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return (
            self._token is not None
            and self._token.expires_on - self.refresh_margin > self._now()
        )

    async def get(self) -> str:
        """Return a token valid for at least ``refresh_margin``."""
        if self._is_fresh():
            return self._token.token

        async with self._lock:
            # Another caller may have refreshed while we waited on the lock.
            if self._is_fresh():
                return self._token.token
            self._token = await self._acquire()
            logger.debug(f"Acquired new access token for {self.cache_key}")
            return self._token.token

    async def __call__(self) -> str:
        return await self.get()

    def invalidate(self) -> None:
        self._token = None

    async def _acquire(self) -> AccessToken:
        try:
            if inspect.iscoroutinefunction(self._provider) or inspect.iscoroutinefunction(
                getattr(self._provider, "__call__", None)
            ):
                return await self._provider()
            result = await asyncio.to_thread(self._provider)
            if inspect.isawaitable(result):
                result = await result
            return result
        except TokenAcquisitionError:
            raise
        except Exception as e:
            raise TokenAcquisitionError(f"Token acquisition failed for {self.cache_key}: {e}") from e


class MsalClientCredentialProvider:
    """Client-credentials flow for an Entra ID app registration."""

    def __init__(self, tenant_id: str, client_id: str, client_secret: str, scopes: list[str]):
        self.scopes = scopes
        self._app = msal.ConfidentialClientApplication(
            client_id,
            authority=f"https://login.microsoftonline.com/{tenant_id}",
            client_credential=client_secret,
        )

    def __call__(self) -> AccessToken:
        result = self._app.acquire_token_for_client(scopes=self.scopes)
        return AccessToken.from_msal_result(result)


class MsalManagedIdentityProvider:
    """Token for the host's system- or user-assigned managed identity."""

    def __init__(self, resource: str, client_id: Optional[str] = None):
        self.resource = resource
        identity = (
            msal.UserAssignedManagedIdentity(client_id=client_id)
            if client_id
            else msal.SystemAssignedManagedIdentity()
        )
        self._client = msal.ManagedIdentityClient(identity, http_client=requests.Session())

    def __call__(self) -> AccessToken:
        result = self._client.acquire_token_for_client(resource=self.resource)
        return AccessToken.from_msal_result(result)


def scope_to_resource(scope: str) -> str:
    """``https://host/api/.default`` -> ``https://host/api``"""
    return scope[: -len("/.default")] if scope.endswith("/.default") else scope


def build_token_cache(
    auth: AuthSettings,
    scopes: list[str],
    client_secret: Optional[str] = None,
) -> TokenCache:
    """
    Create the token cache for the configured credential identity.

    Args:
        auth: Authentication section of the registry
        scopes: Scopes requested for downstream calls
        client_secret: Secret for the client-credentials flow

    Returns:
        TokenCache keyed by tenant, client and scopes

    Raises:
        ConfigurationError: If client credentials are selected but incomplete
    """
    scope_key = "|".join(sorted(scopes))
    if auth.use_managed_identity:
        provider = MsalManagedIdentityProvider(
            resource=scope_to_resource(scopes[0]), client_id=auth.client_id or None
        )
        cache_key = f"managed-identity|{auth.client_id or 'system'}|{scope_key}"
        logger.info("Using managed identity for downstream agent tokens")
    else:
        if not (auth.tenant_id and auth.client_id and client_secret):
            raise ConfigurationError(
                "Client credentials require tenantId, clientId and AZURE_CLIENT_SECRET"
            )
        provider = MsalClientCredentialProvider(
            auth.tenant_id, auth.client_id, client_secret, scopes
        )
        cache_key = f"{auth.tenant_id}|{auth.client_id}|{scope_key}"
        logger.info(f"Using client credentials for downstream agent tokens: {auth.client_id}")
    return TokenCache(provider, cache_key=cache_key)
