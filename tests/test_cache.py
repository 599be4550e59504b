# tests/test_cache.py
import pytest

from oee_api.cache import RealtimeCache


def test_miss_then_hit(timer):
    c = RealtimeCache(ttl_sec=300, bucket_sec=10, clock=timer)
    assert c.get("M1") is None
    c.set("M1", {"oee": 0.5})
    timer.t = 105.0
    assert c.get("M1") == {"oee": 0.5}
    assert (c.hits, c.misses) == (1, 1)


def test_expires_after_ttl(timer):
    c = RealtimeCache(ttl_sec=5, bucket_sec=10, clock=timer)
    c.set("M1", "v")
    timer.t = 104.9
    assert c.get("M1") == "v"
    timer.t = 105.0
    assert c.get("M1") is None


def test_new_bucket_is_a_miss(timer):
    c = RealtimeCache(ttl_sec=300, bucket_sec=10, clock=timer)
    c.set("M1", "v")
    timer.t = 110.0
    assert c.get("M1") is None


def test_machines_are_independent(timer):
    c = RealtimeCache(clock=timer)
    c.set("M1", 1)
    assert c.get("M2") is None
    assert c.get("M1") == 1


def test_expiry_is_lazy_until_sweep(timer):
    c = RealtimeCache(ttl_sec=5, bucket_sec=10, clock=timer)
    c.set("M1", 1)
    c.set("M2", 2)
    timer.t = 200.0
    assert c.get("M1") is None
    assert len(c) == 2
    assert c.sweep() == 2
    assert len(c) == 0


def test_sweep_keeps_fresh_entries(timer):
    c = RealtimeCache(ttl_sec=300, bucket_sec=10, clock=timer)
    c.set("M1", 1)
    assert c.sweep() == 0
    assert c.get("M1") == 1


@pytest.mark.parametrize("ttl,bucket", [(0, 10), (10, 0), (-1, 10)])
def test_rejects_bad_config(ttl, bucket):
    with pytest.raises(ValueError):
        RealtimeCache(ttl_sec=ttl, bucket_sec=bucket)


def test_stale_entries_swept_on_write(timer):
    c = RealtimeCache(ttl_sec=300, bucket_sec=10, clock=timer, sweep_every=2)
    c.set("M1", 1)
    timer.t = 200.0
    c.set("M2", 2)
    assert len(c) == 1
    assert c.get("M2") == 2
