"""
Deterministic SHA-256 digests for analysis requests.

The digest identifies a request for caching and in-flight coalescing, so it
must not depend on dict ordering or whitespace in the serialized payload.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

__all__ = [
    "canonical_json",
    "request_digest",
    "media_digest",
]


class DigestError(ValueError):
    """Raised when a value cannot be serialized into a canonical form."""


def canonical_json(value: Any) -> str:
    """
    Serialize a JSON-compatible value with sorted keys and compact separators.

    Non-JSON scalars (datetimes, enums, UUIDs) fall back to ``str``.
    """
    try:
        return json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str,
        )
    except (TypeError, ValueError) as e:
        raise DigestError(f"Value is not serializable: {e}") from e


def request_digest(kind: str, payload: Any, options: Any, *, namespace: str = "analysis") -> str:
    """
    Compute the cache/dedup key for one analysis request.

    Args:
        kind: Request kind (e.g. ``photo_analysis``).
        payload: Kind-specific request data.
        options: Options bag as plain data.
        namespace: Logical namespace to avoid collisions between caches.
    """
    body = canonical_json({"kind": kind, "payload": payload, "options": options})
    scoped = f"{namespace}:{body}"
    return hashlib.sha256(scoped.encode("utf-8")).hexdigest()


def media_digest(data: str | bytes) -> str:
    """Hash raw media (data URL or bytes) for logging and record keys."""
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return hashlib.sha256(raw).hexdigest()
