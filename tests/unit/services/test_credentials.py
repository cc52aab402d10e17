import json

import pytest

from datecoach.services.credentials import (
    CULTURAL_CONTEXT_KEY,
    TIER_DATA_KEY,
    CredentialNotFoundError,
    CredentialProvider,
    KeyValueStoreError,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    StoredCredentialProvider,
    create_credential_provider,
)
from datecoach.services.tier_policy import SubscriptionTier, TierQuota


@pytest.mark.asyncio
async def test_reads_user_and_session(credentials):
    assert await credentials.get_user_id() == "user-123"
    assert await credentials.get_session_token() == "token-abc"


@pytest.mark.asyncio
async def test_missing_user_raises():
    provider = StoredCredentialProvider(MemoryKeyValueStore())

    with pytest.raises(CredentialNotFoundError) as exc_info:
        await provider.get_user_id()

    assert str(exc_info.value) == "User not authenticated"
    assert exc_info.value.key == "user_id"


@pytest.mark.asyncio
async def test_missing_session_token_raises():
    provider = StoredCredentialProvider(MemoryKeyValueStore({"user_id": "user-123"}))

    with pytest.raises(CredentialNotFoundError, match="Session token not found"):
        await provider.get_session_token()


@pytest.mark.asyncio
async def test_cultural_context_defaults(kv_store):
    provider = StoredCredentialProvider(kv_store, default_cultural_context="east_asian")
    assert await provider.get_cultural_context() == "east_asian"

    await kv_store.set(CULTURAL_CONTEXT_KEY, "latin_american")
    assert await provider.get_cultural_context() == "latin_american"


@pytest.mark.asyncio
async def test_cultural_context_survives_store_failure():
    class BrokenStore(MemoryKeyValueStore):
        async def get(self, key):
            raise KeyValueStoreError("down")

    provider = StoredCredentialProvider(BrokenStore(), default_cultural_context="western_urban")
    assert await provider.get_cultural_context() == "western_urban"


@pytest.mark.asyncio
async def test_missing_or_corrupt_tier_data_is_free():
    store = MemoryKeyValueStore()
    provider = StoredCredentialProvider(store)
    assert (await provider.get_tier_quota()).tier == SubscriptionTier.FREE

    await store.set(TIER_DATA_KEY, "{not json")
    quota = await provider.get_tier_quota()
    assert quota.tier == SubscriptionTier.FREE
    assert quota.used == {}


@pytest.mark.asyncio
async def test_save_tier_quota_persists_json(kv_store, credentials):
    quota = TierQuota(tier=SubscriptionTier.PREMIUM, used={"photo_analysis": 2})
    await credentials.save_tier_quota(quota)

    stored = json.loads(await kv_store.get(TIER_DATA_KEY))
    assert stored == {"tier": "premium", "usage": {"photo_analysis": 2}}
    assert (await credentials.get_tier_quota()).usage_for("photo_analysis") == 2


def test_factory_uses_memory_store_without_redis(monkeypatch):
    monkeypatch.setattr("datecoach.services.credentials.settings.CREDENTIAL_STORE_REDIS_URL", None)
    provider = create_credential_provider()

    assert isinstance(provider.store, MemoryKeyValueStore)
    assert isinstance(provider, CredentialProvider)


def test_factory_uses_redis_when_configured(monkeypatch):
    monkeypatch.setattr(
        "datecoach.services.credentials.settings.CREDENTIAL_STORE_REDIS_URL", "redis://localhost:6379/0"
    )
    provider = create_credential_provider()

    assert isinstance(provider.store, RedisKeyValueStore)
    assert provider.store._key("user_id") == "datecoach:credentials:user_id"
