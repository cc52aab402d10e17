# datecoach/services/tier_policy.py
"""
Tier Policy
Plan-based usage limits per analysis kind. Pure lookups, no hidden state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from datecoach.models.domain.analysis_domain import AnalysisKind

UNLIMITED = -1


class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    ELITE = "elite"


# Historical and marketing names still found in stored tier records
TIER_ALIASES: dict[str, SubscriptionTier] = {
    "spark": SubscriptionTier.FREE,
    "flame": SubscriptionTier.PREMIUM,
    "blaze": SubscriptionTier.ELITE,
    "expert": SubscriptionTier.ELITE,
    "pro": SubscriptionTier.ELITE,
}

TIER_LIMITS: dict[SubscriptionTier, dict[AnalysisKind, int]] = {
    SubscriptionTier.FREE: {
        AnalysisKind.PROFILE: 5,
        AnalysisKind.CONVERSATION: 10,
        AnalysisKind.PHOTO: 3,
        AnalysisKind.COMPATIBILITY: 3,
        AnalysisKind.PAGE: 10,
    },
    SubscriptionTier.PREMIUM: {
        AnalysisKind.PROFILE: 100,
        AnalysisKind.CONVERSATION: 200,
        AnalysisKind.PHOTO: 50,
        AnalysisKind.COMPATIBILITY: 50,
        AnalysisKind.PAGE: 200,
    },
    SubscriptionTier.ELITE: {kind: UNLIMITED for kind in AnalysisKind},
}


def normalize_tier(value: str | SubscriptionTier | None) -> SubscriptionTier:
    """Map a stored tier name onto a known tier; unknown names count as free."""
    if isinstance(value, SubscriptionTier):
        return value
    name = (value or "").strip().lower()
    if name in TIER_ALIASES:
        return TIER_ALIASES[name]
    try:
        return SubscriptionTier(name)
    except ValueError:
        return SubscriptionTier.FREE


def limit(tier: str | SubscriptionTier, kind: str | AnalysisKind) -> int:
    """Usage limit for a tier and request kind; -1 means unlimited."""
    return TIER_LIMITS[normalize_tier(tier)].get(AnalysisKind(kind), 0)


def allowed(tier: str | SubscriptionTier, kind: str | AnalysisKind, used: int) -> bool:
    tier_limit = limit(tier, kind)
    return tier_limit == UNLIMITED or used < tier_limit


def remaining(tier: str | SubscriptionTier, kind: str | AnalysisKind, used: int) -> int:
    tier_limit = limit(tier, kind)
    if tier_limit == UNLIMITED:
        return UNLIMITED
    return max(0, tier_limit - used)


@dataclass(slots=True)
class TierCheckResult:
    allowed: bool
    current_tier: str
    usage: int
    limit: int
    remaining: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "current_tier": self.current_tier,
            "usage": self.usage,
            "limit": self.limit,
            "remaining": self.remaining,
        }


@dataclass(slots=True)
class TierQuota:
    """A user's tier and per-kind usage counters, as kept in the credential store."""

    tier: SubscriptionTier = SubscriptionTier.FREE
    used: dict[str, int] = field(default_factory=dict)

    def usage_for(self, kind: str | AnalysisKind) -> int:
        return int(self.used.get(AnalysisKind(kind).value, 0))

    def check(self, kind: str | AnalysisKind, pending: int = 0) -> TierCheckResult:
        """
        Whether one more request of ``kind`` fits the tier.

        ``pending`` counts requests already admitted but not yet recorded.
        """
        usage = self.usage_for(kind)
        return TierCheckResult(
            allowed=allowed(self.tier, kind, usage + pending),
            current_tier=self.tier.value,
            usage=usage,
            limit=limit(self.tier, kind),
            remaining=remaining(self.tier, kind, usage + pending),
        )

    def record(self, kind: str | AnalysisKind) -> int:
        key = AnalysisKind(kind).value
        self.used[key] = self.used.get(key, 0) + 1
        return self.used[key]

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier.value, "usage": dict(self.used)}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TierQuota":
        data = data or {}
        usage = data.get("usage") or {}
        return cls(
            tier=normalize_tier(data.get("tier")),
            used={str(k): int(v) for k, v in usage.items() if isinstance(v, (int, float))},
        )
