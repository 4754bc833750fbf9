import pytest

from vitrina.cache import ReadThroughCache, RedisCache, serialize
from vitrina.errors import CacheUnavailable, StoreUnavailable


@pytest.fixture
def read_through(cache):
    return ReadThroughCache(cache, ttl_seconds=600)


class Counter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


def test_miss_computes_and_populates(read_through, fake_redis):
    compute = Counter([{"id": "l1"}])

    result = read_through.fetch("property:list:abc", compute)

    assert compute.calls == 1
    assert result.from_cache is False
    assert result.data() == [{"id": "l1"}]
    assert fake_redis.get("property:list:abc") == result.payload


def test_entry_gets_ttl(read_through, fake_redis):
    read_through.fetch("property:list:abc", Counter([]))
    assert 0 < fake_redis.ttl("property:list:abc") <= 600


def test_hit_returns_identical_bytes_without_compute(read_through):
    compute = Counter([{"id": "l1", "price": 10}])

    first = read_through.fetch("k", compute)
    second = read_through.fetch("k", compute)

    assert compute.calls == 1
    assert second.from_cache is True
    assert second.payload == first.payload


def test_expired_entry_is_recomputed(read_through, fake_redis):
    compute = Counter({"id": "l1"})
    read_through.fetch("k", compute)
    fake_redis.expire_now("k")

    result = read_through.fetch("k", compute)

    assert compute.calls == 2
    assert result.from_cache is False


def test_get_failure_degrades_to_miss(read_through, fake_redis):
    fake_redis.failing.add("get")
    compute = Counter([1, 2, 3])

    result = read_through.fetch("k", compute)

    assert result.data() == [1, 2, 3]
    assert compute.calls == 1


def test_set_failure_still_returns_result(read_through, fake_redis):
    fake_redis.failing.add("set")

    result = read_through.fetch("k", Counter({"ok": True}))

    assert result.data() == {"ok": True}
    fake_redis.failing.clear()
    assert fake_redis.get("k") is None


def test_cache_completely_down_is_always_a_miss(read_through, fake_redis):
    fake_redis.failing.add("*")
    compute = Counter([])

    read_through.fetch("k", compute)
    read_through.fetch("k", compute)

    assert compute.calls == 2


def test_corrupt_entry_is_recomputed(read_through, fake_redis):
    fake_redis.set("k", b"{not json")
    compute = Counter({"fresh": True})

    result = read_through.fetch("k", compute)

    assert result.data() == {"fresh": True}
    assert fake_redis.get("k") == serialize({"fresh": True})


def test_compute_failure_propagates_and_caches_nothing(read_through, fake_redis):
    def broken():
        raise StoreUnavailable("store caído")

    with pytest.raises(StoreUnavailable):
        read_through.fetch("k", broken)
    assert fake_redis.get("k") is None


def test_redis_errors_become_cache_unavailable(fake_redis):
    cache = RedisCache(fake_redis)
    fake_redis.failing.add("scan")
    with pytest.raises(CacheUnavailable):
        cache.scan(0, "property:list:*", 10)


def test_serialize_is_canonical():
    assert serialize({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'
    assert serialize({"a": 1, "b": 2}) == serialize({"b": 2, "a": 1})
