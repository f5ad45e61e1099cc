"""Cache service in local-only mode and with an unreachable Redis."""

from factory_erp.services.cache_service import CacheService


def test_local_mode_round_trip_and_invalidation():
    cache = CacheService(redis_url=None)
    cache.set_json("purchase-orders:1", {"total": 1})
    cache.set_json("purchase-orders:2", {"total": 2})
    cache.set("suppliers:1", "kept")

    assert cache.get_json("purchase-orders:1") == {"total": 1}
    cache.invalidate_pattern("purchase-orders:*")

    assert cache.get_json("purchase-orders:1") is None
    assert cache.get_json("purchase-orders:2") is None
    assert cache.get("suppliers:1") == "kept"
    assert cache.health_check() is True


def test_unreachable_redis_falls_back_to_local():
    cache = CacheService(redis_url="redis://127.0.0.1:1/0", timeout_seconds=0.2)

    cache.set("key", "value")

    assert cache.get("key") == "value"
    assert cache.health_check() is False
    cache.delete("key")
    assert cache.get("key") is None
    cache.close()
