import time

from app import rate_limiter
from app.rate_limiter import MEMORY_CACHE_CLEANUP_INTERVAL, check_rate_limit, cleanup_expired_cache


def _fill(count, reset_time, prefix="order_cancel"):
    for i in range(count):
        rate_limiter.memory_cache[f"{prefix}:10.0.{i // 256}.{i % 256}"] = {
            "count": 1,
            "reset_time": reset_time,
            "last_redis_sync": 0,
        }


def test_expired_windows_are_evicted():
    now = int(time.time())
    _fill(5000, reset_time=now - 1)
    rate_limiter.memory_cache["order_cancel:live"] = {
        "count": 3,
        "reset_time": now + 30,
        "last_redis_sync": now,
    }

    removed = cleanup_expired_cache(now)

    assert removed == 5000
    assert list(rate_limiter.memory_cache) == ["order_cancel:live"]


def test_cleanup_runs_at_most_once_per_interval():
    now = int(time.time())
    cleanup_expired_cache(now)
    _fill(10, reset_time=now)

    assert cleanup_expired_cache(now + MEMORY_CACHE_CLEANUP_INTERVAL - 1) == 0
    assert len(rate_limiter.memory_cache) == 10

    assert cleanup_expired_cache(now + MEMORY_CACHE_CLEANUP_INTERVAL) == 10
    assert rate_limiter.memory_cache == {}


def test_rate_limit_check_sweeps_stale_clients(fake_redis):
    _fill(500, reset_time=int(time.time()) - 3600)

    allowed, count, _ = check_rate_limit("order_cancel:127.0.0.1", 10, 60, fake_redis)

    assert allowed is True
    assert count == 1
    assert list(rate_limiter.memory_cache) == ["order_cancel:127.0.0.1"]
