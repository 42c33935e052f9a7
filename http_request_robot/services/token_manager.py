"""
OAuth credential lifecycle management.

Keeps each tenant's callback credential valid across concurrent executions:
cached credentials are served without I/O until they enter the expiry
buffer, then exactly one refresh runs per tenant while every concurrent
caller waits for its outcome.
"""

import asyncio
import time
from typing import Any, Callable

import httpx
from starlette.concurrency import run_in_threadpool

from ..exceptions import CredentialError
from ..logging_config import get_logger
from ..schemas.invocation import InvocationAuth, OAuthCredential
from .token_store import TokenStore


logger = get_logger("token_manager")


class TokenManager:
    """
    Per-tenant OAuth credential cache with single-flight refresh.

    Args:
        store: Persistent credential storage
        client: HTTP client used for the token endpoint
        token_url: OAuth token endpoint
        client_id: Application client id
        client_secret: Application client secret
        buffer_seconds: Refresh this long before the access token expires
        default_lifetime_seconds: Lifetime assumed when the provider sends none
        timeout: Token endpoint timeout in seconds
        clock: Returns the current time as epoch seconds
    """

    def __init__(
        self,
        store: TokenStore,
        client: httpx.AsyncClient,
        token_url: str,
        client_id: str | None,
        client_secret: str | None,
        buffer_seconds: float = 300,
        default_lifetime_seconds: float = 3600,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.client = client
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.buffer_seconds = buffer_seconds
        self.default_lifetime_seconds = default_lifetime_seconds
        self.timeout = timeout
        self.clock = clock
        self._cache: dict[str, OAuthCredential] = {}
        self._in_flight: dict[str, asyncio.Future[OAuthCredential]] = {}
        # Bumped on install and uninstall; a refresh started under an older
        # generation must not write its result back
        self._generations: dict[str, int] = {}

    def needs_refresh(self, credential: OAuthCredential) -> bool:
        return self.clock() >= credential.expires_at - self.buffer_seconds

    def _generation(self, tenant_id: str) -> int:
        return self._generations.get(tenant_id, 0)

    def _bump_generation(self, tenant_id: str) -> None:
        self._generations[tenant_id] = self._generation(tenant_id) + 1

    async def _load(self, tenant_id: str) -> OAuthCredential | None:
        generation = self._generation(tenant_id)
        try:
            stored = await run_in_threadpool(self.store.get, tenant_id)
        except Exception as e:
            logger.error("Stored credential could not be read", tenant_id=tenant_id, error=str(e))
            raise CredentialError(f"Failed to load stored credential for tenant {tenant_id}") from e
        # A refresh may have completed while the store was being read
        if tenant_id in self._cache:
            return self._cache[tenant_id]
        if self._generation(tenant_id) != generation:
            return None
        if stored is not None:
            self._cache[tenant_id] = stored
        return stored

    async def get_valid_token(self, tenant_id: str) -> OAuthCredential | None:
        """
        Return a credential that is not about to expire.

        Returns:
            The credential, or None if the tenant has none stored

        Raises:
            CredentialError: If a needed refresh fails
        """
        credential = self._cache.get(tenant_id)
        if credential is None:
            credential = await self._load(tenant_id)
            if credential is None:
                return None

        if not self.needs_refresh(credential):
            return credential

        future = self._in_flight.get(tenant_id)
        if future is None:
            future = asyncio.ensure_future(self._refresh(tenant_id))
            self._in_flight[tenant_id] = future
            future.add_done_callback(lambda done: self._refresh_finished(tenant_id, done))
        else:
            logger.debug("Joining in-flight token refresh", tenant_id=tenant_id)

        return await asyncio.shield(future)

    def _refresh_finished(self, tenant_id: str, future: asyncio.Future) -> None:
        if self._in_flight.get(tenant_id) is future:
            del self._in_flight[tenant_id]
        if not future.cancelled():
            # Mark the exception retrieved even if every waiter was cancelled
            future.exception()

    async def _request_refresh(self, refresh_token: str) -> dict[str, Any]:
        if not self.client_id or not self.client_secret:
            raise CredentialError("OAuth client id and secret must be configured to refresh tokens")

        try:
            response = await self.client.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise CredentialError(f"OAuth refresh request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if data.get("error"):
            description = data.get("error_description")
            message = f"OAuth refresh failed: {data['error']}"
            raise CredentialError(f"{message} - {description}" if description else message)
        if not response.is_success:
            raise CredentialError(f"OAuth refresh failed with HTTP {response.status_code}")
        if not data.get("access_token"):
            raise CredentialError("OAuth refresh response did not contain an access token")

        return data

    async def _refresh(self, tenant_id: str) -> OAuthCredential:
        generation = self._generation(tenant_id)
        current = self._cache.get(tenant_id) or await self._load(tenant_id)
        if current is None:
            raise CredentialError(f"No stored credential for tenant {tenant_id}")

        logger.info("Refreshing OAuth token", tenant_id=tenant_id)
        data = await self._request_refresh(current.refresh_token)

        lifetime = data.get("expires_in") or self.default_lifetime_seconds
        refreshed = OAuthCredential(
            tenant_id=tenant_id,
            domain=current.domain,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or current.refresh_token,
            expires_at=max(self.clock() + float(lifetime), current.expires_at),
            client_endpoint=data.get("client_endpoint") or current.client_endpoint,
            server_endpoint=data.get("server_endpoint") or current.server_endpoint,
            scope=data.get("scope") or current.scope,
        )
        if self._generation(tenant_id) != generation:
            return await self._superseded(tenant_id, generation)

        try:
            saved = await run_in_threadpool(self.store.update, refreshed, current.refresh_token)
        except Exception as e:
            # The provider has already rotated the refresh token; the stored
            # one is now likely invalid and the tenant may need to reinstall.
            logger.error(
                "Refreshed token could not be persisted; stored refresh token may be stale",
                tenant_id=tenant_id,
                error=str(e),
            )
            raise CredentialError(f"Failed to persist refreshed token for tenant {tenant_id}") from e

        if saved is None or self._generation(tenant_id) != generation:
            return await self._superseded(tenant_id, generation)

        self._cache[tenant_id] = saved
        logger.info("OAuth token refreshed", tenant_id=tenant_id, expires_at=saved.expires_at)
        return saved

    async def _superseded(self, tenant_id: str, generation: int) -> OAuthCredential:
        """Outcome of a refresh whose credential was replaced or deleted meanwhile."""
        if self._generation(tenant_id) == generation:
            # Rewritten in storage by another process; read it back
            self._cache.pop(tenant_id, None)
            replacement = await self._load(tenant_id)
        else:
            replacement = self._cache.get(tenant_id)
        if replacement is None:
            raise CredentialError(f"Credential for tenant {tenant_id} was removed during refresh")
        logger.info("Refresh superseded by a newer credential", tenant_id=tenant_id)
        return replacement

    async def save_credential(self, auth: InvocationAuth) -> OAuthCredential | None:
        """
        Store the credential delivered with an install event.

        Returns:
            The stored credential, or None if the event carried no tokens
        """
        if not auth.member_id or not auth.access_token or not auth.refresh_token:
            logger.warning("Install event carried no usable tokens", tenant_id=auth.member_id)
            return None

        lifetime = auth.expires_in or self.default_lifetime_seconds
        credential = OAuthCredential(
            tenant_id=auth.member_id,
            domain=auth.domain,
            access_token=auth.access_token,
            refresh_token=auth.refresh_token,
            expires_at=self.clock() + float(lifetime),
            client_endpoint=auth.client_endpoint,
            server_endpoint=auth.server_endpoint,
            scope=auth.scope,
        )
        self._bump_generation(auth.member_id)
        try:
            saved = await run_in_threadpool(self.store.save, credential)
        except Exception as e:
            logger.error("Installed credential could not be stored", tenant_id=auth.member_id, error=str(e))
            raise CredentialError(f"Failed to store credential for tenant {auth.member_id}") from e
        self._cache[auth.member_id] = saved
        logger.info("OAuth credential stored", tenant_id=auth.member_id, domain=auth.domain)
        return saved

    async def delete_credential(self, tenant_id: str) -> None:
        """Forget the tenant's credential, in storage and in memory."""
        self._bump_generation(tenant_id)
        await run_in_threadpool(self.store.delete, tenant_id)
        self._cache.pop(tenant_id, None)
        self._in_flight.pop(tenant_id, None)
        logger.info("OAuth credential deleted", tenant_id=tenant_id)
