import pytest

from datecoach.models.domain.analysis_domain import AnalysisKind
from datecoach.services import tier_policy
from datecoach.services.tier_policy import SubscriptionTier, TierQuota


def test_free_tier_limits():
    assert tier_policy.limit("free", AnalysisKind.PHOTO) == 3
    assert tier_policy.limit("free", AnalysisKind.PROFILE) == 5
    assert tier_policy.limit("free", AnalysisKind.CONVERSATION) == 10


def test_elite_is_unlimited_for_every_kind():
    for kind in AnalysisKind:
        assert tier_policy.limit("elite", kind) == tier_policy.UNLIMITED
        assert tier_policy.allowed("elite", kind, 10_000)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("spark", SubscriptionTier.FREE),
        ("Flame", SubscriptionTier.PREMIUM),
        ("pro", SubscriptionTier.ELITE),
        ("premium", SubscriptionTier.PREMIUM),
        ("gold", SubscriptionTier.FREE),
        (None, SubscriptionTier.FREE),
    ],
)
def test_normalize_tier(name, expected):
    assert tier_policy.normalize_tier(name) == expected


def test_allowed_is_strictly_below_limit():
    assert tier_policy.allowed("free", "photo_analysis", 2)
    assert not tier_policy.allowed("free", "photo_analysis", 3)


def test_remaining_never_negative():
    assert tier_policy.remaining("free", "photo_analysis", 1) == 2
    assert tier_policy.remaining("free", "photo_analysis", 7) == 0
    assert tier_policy.remaining("elite", "photo_analysis", 7) == tier_policy.UNLIMITED


def test_quota_counts_per_kind():
    quota = TierQuota(tier=SubscriptionTier.FREE)
    quota.record(AnalysisKind.PHOTO)
    quota.record("photo_analysis")

    assert quota.usage_for("photo_analysis") == 2
    assert quota.usage_for(AnalysisKind.PROFILE) == 0


def test_quota_check_reports_usage_and_limit():
    quota = TierQuota(tier=SubscriptionTier.FREE, used={"photo_analysis": 3})
    result = quota.check("photo_analysis")

    assert result.allowed is False
    assert result.to_dict() == {
        "allowed": False,
        "current_tier": "free",
        "usage": 3,
        "limit": 3,
        "remaining": 0,
    }


def test_quota_round_trips_through_stored_shape():
    quota = TierQuota.from_dict({"tier": "flame", "usage": {"profile_analysis": 4, "bad": "x"}})

    assert quota.tier == SubscriptionTier.PREMIUM
    assert quota.used == {"profile_analysis": 4}
    assert quota.to_dict() == {"tier": "premium", "usage": {"profile_analysis": 4}}


def test_quota_check_counts_pending_requests():
    quota = TierQuota(tier=SubscriptionTier.FREE, used={"photo_analysis": 2})

    assert quota.check("photo_analysis").remaining == 1
    pending = quota.check("photo_analysis", pending=1)
    assert pending.allowed is False
    assert pending.usage == 2
    assert pending.remaining == 0


def test_elite_check_reports_unlimited_remaining():
    quota = TierQuota(tier=SubscriptionTier.ELITE, used={"photo_analysis": 500})

    result = quota.check("photo_analysis", pending=10)

    assert result.allowed is True
    assert result.remaining == tier_policy.UNLIMITED
