import json

import pytest

from datecoach.auth.verify import auth_dependency
from datecoach.services.credentials import (
    SESSION_TOKEN_KEY,
    TIER_DATA_KEY,
    USER_ID_KEY,
    MemoryKeyValueStore,
    StoredCredentialProvider,
)


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore(
        {
            USER_ID_KEY: "user-123",
            SESSION_TOKEN_KEY: "token-abc",
            TIER_DATA_KEY: json.dumps({"tier": "premium", "usage": {}}),
        }
    )


@pytest.fixture
def credentials(kv_store):
    return StoredCredentialProvider(kv_store)
