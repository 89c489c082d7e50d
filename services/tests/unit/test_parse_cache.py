from __future__ import annotations

from designlens.services.cache import ParseCache, make_cache_key


def test_cache_key_ignores_argument_order() -> None:
    assert make_cache_key(file_key="F", node_id="1:2") == make_cache_key(node_id="1:2", file_key="F")
    assert make_cache_key(file_key="F", node_id=None) != make_cache_key(file_key="F", node_id="1:2")


def test_expired_entries_are_only_served_when_stale_allowed() -> None:
    now = {"value": 0.0}
    cache = ParseCache(ttl_seconds=10.0, clock=lambda: now["value"])
    cache.store("key", {"frames": []})

    assert cache.get("key") == {"frames": []}
    now["value"] = 11.0
    assert cache.get("key") is None
    assert cache.get("key", allow_stale=True) == {"frames": []}
    assert cache.get("other", allow_stale=True) is None
