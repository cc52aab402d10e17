# datecoach/services/credentials.py
"""
Credential Store
User id, session token, cultural context and tier usage for the broker,
read from an injected key-value store rather than ambient platform state.
"""

from __future__ import annotations

import json
from typing import Protocol, runtime_checkable

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from datecoach.config import settings
from datecoach.infrastructure.observability.logging import get_logger
from datecoach.services.tier_policy import TierQuota

logger = get_logger(__name__)

USER_ID_KEY = "user_id"
SESSION_TOKEN_KEY = "session_token"
CULTURAL_CONTEXT_KEY = "cultural_context"
TIER_DATA_KEY = "tier_data"


class CredentialNotFoundError(Exception):
    """Raised when a required credential is missing from the store."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class KeyValueStoreError(Exception):
    """Raised when the backing key-value store cannot be reached."""


@runtime_checkable
class CredentialProvider(Protocol):
    async def get_user_id(self) -> str: ...

    async def get_session_token(self) -> str: ...

    async def get_cultural_context(self) -> str: ...

    async def get_tier_quota(self) -> TierQuota: ...

    async def save_tier_quota(self, quota: TierQuota) -> None: ...


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> bool: ...


class MemoryKeyValueStore:
    """Process-local store, used by scripts and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class RedisKeyValueStore:
    """Redis-backed store with a lazily created connection pool."""

    def __init__(self, url: str, namespace: str = "datecoach:credentials"):
        self.url = url
        self.namespace = namespace
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=10,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
            self._initialized = True
            logger.info("Credential store Redis client initialized", namespace=self.namespace)

        except Exception as e:
            logger.error("Failed to initialize credential store Redis client", error=str(e))
            self._initialized = False
            raise KeyValueStoreError("Redis initialization failed") from e

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        await self.initialize()
        try:
            return await self.client.get(self._key(key))
        except redis.RedisError as e:
            raise KeyValueStoreError(f"Redis GET failed: {e}") from e

    async def set(self, key: str, value: str) -> None:
        await self.initialize()
        try:
            await self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise KeyValueStoreError(f"Redis SET failed: {e}") from e

    async def delete(self, key: str) -> bool:
        await self.initialize()
        try:
            return await self.client.delete(self._key(key)) > 0
        except redis.RedisError as e:
            raise KeyValueStoreError(f"Redis DELETE failed: {e}") from e

    async def ping(self) -> bool:
        try:
            await self.initialize()
            return bool(await self.client.ping())
        except (KeyValueStoreError, redis.RedisError) as e:
            logger.error("Credential store ping failed", error=str(e))
            return False

    async def close(self):
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        self._initialized = False


class StoredCredentialProvider:
    """CredentialProvider on top of any KeyValueStore."""

    def __init__(self, store: KeyValueStore, default_cultural_context: str | None = None):
        self.store = store
        self.default_cultural_context = (
            default_cultural_context or settings.DEFAULT_CULTURAL_CONTEXT
        )

    async def get_user_id(self) -> str:
        user_id = await self.store.get(USER_ID_KEY)
        if not user_id:
            raise CredentialNotFoundError("User not authenticated", key=USER_ID_KEY)
        return user_id

    async def get_session_token(self) -> str:
        token = await self.store.get(SESSION_TOKEN_KEY)
        if not token:
            raise CredentialNotFoundError("Session token not found", key=SESSION_TOKEN_KEY)
        return token

    async def get_cultural_context(self) -> str:
        try:
            context = await self.store.get(CULTURAL_CONTEXT_KEY)
        except KeyValueStoreError as e:
            logger.warning("Cultural context unavailable, using default", error=str(e))
            return self.default_cultural_context
        return context or self.default_cultural_context

    async def get_tier_quota(self) -> TierQuota:
        raw = await self.store.get(TIER_DATA_KEY)
        if not raw:
            return TierQuota()
        try:
            return TierQuota.from_dict(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            logger.warning("Invalid tier data in credential store, treating as free tier")
            return TierQuota()

    async def save_tier_quota(self, quota: TierQuota) -> None:
        await self.store.set(TIER_DATA_KEY, json.dumps(quota.to_dict()))


def create_credential_provider(store: KeyValueStore | None = None) -> StoredCredentialProvider:
    """Build a provider on Redis when configured, else on an in-memory store."""
    if store is None:
        if settings.CREDENTIAL_STORE_REDIS_URL:
            store = RedisKeyValueStore(settings.CREDENTIAL_STORE_REDIS_URL)
        else:
            store = MemoryKeyValueStore()
    return StoredCredentialProvider(store)
