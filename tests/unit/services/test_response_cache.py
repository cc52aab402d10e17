import pytest

from datecoach.services.response_cache import ResponseCache


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


def test_get_returns_stored_response(clock):
    cache = ResponseCache(max_entries=2, ttl_seconds=300, clock=clock)
    cache.set("a", {"v": 1})

    assert cache.get("a") == {"v": 1}
    assert cache.hits == 1


def test_entry_expires_at_ttl(clock):
    cache = ResponseCache(max_entries=2, ttl_seconds=300, clock=clock)
    cache.set("a", "response")

    clock.now += 299.9
    assert cache.get("a") == "response"

    clock.now += 0.1
    assert cache.get("a") is None
    assert "a" not in cache


def test_oldest_inserted_entry_is_evicted(clock):
    cache = ResponseCache(max_entries=2, ttl_seconds=300, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")  # reads do not refresh position
    cache.set("c", 3)

    assert cache.keys() == ["b", "c"]
    assert len(cache) == 2


def test_resetting_a_key_moves_it_to_the_tail(clock):
    cache = ResponseCache(max_entries=2, ttl_seconds=300, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.keys() == ["a", "c"]
    assert cache.get("a") == 10


def test_hit_rate_and_clear(clock):
    cache = ResponseCache(max_entries=5, clock=clock)
    cache.set("a", 1)
    cache.get("a")
    cache.get("missing")

    assert cache.hit_rate == 0.5

    cache.clear()
    assert len(cache) == 0
    assert cache.hit_rate == 0.0


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)


def test_default_bound_keeps_fifty_entries(clock):
    cache = ResponseCache(clock=clock)
    for index in range(51):
        cache.set(f"key-{index}", index)

    assert len(cache) == 50
    assert "key-0" not in cache
    assert cache.keys()[0] == "key-1"
