from cache import EntryState, TTLCache


def test_fresh_entry_returned_verbatim(clock):
    cache = TTLCache(default_ttl=60, clock=clock)
    value = {"alerts": [1, 2]}
    cache.set("k", value)
    assert cache.get("k") is value
    assert cache.state("k") is EntryState.FRESH


def test_entry_goes_stale_but_stays_enumerable(clock):
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.set("k", "v")
    clock.advance(60)
    assert cache.get("k") is None
    assert cache.state("k") is EntryState.STALE
    assert "k" in cache.keys()
    assert cache.peek("k") == "v"


def test_absent_key():
    cache = TTLCache()
    assert cache.get("missing") is None
    assert cache.state("missing") is EntryState.ABSENT


def test_per_read_ttl_overrides_default(clock):
    cache = TTLCache(default_ttl=15 * 60, clock=clock)
    cache.set("safety", "data")
    clock.advance(20 * 60)
    assert cache.get("safety") is None
    assert cache.get("safety", ttl=30 * 60) == "data"


def test_overwrite_refreshes_timestamp(clock):
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.set("k", "old")
    clock.advance(50)
    cache.set("k", "new")
    clock.advance(50)
    assert cache.get("k") == "new"


def test_bounded_with_lru_eviction(clock):
    cache = TTLCache(default_ttl=60, max_size=3, clock=clock)
    for key in ("a", "b", "c"):
        cache.set(key, key)
    cache.get("a")  # touch a so b is least recently used
    cache.set("d", "d")
    assert len(cache) == 3
    assert "b" not in cache
    assert "a" in cache and "d" in cache


def test_evict_expired(clock):
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.set("old", 1)
    clock.advance(61)
    cache.set("new", 2)
    assert cache.evict_expired() == 1
    assert cache.keys() == ["new"]


def test_delete_and_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    cache.delete("never-there")
    assert "a" not in cache
    cache.clear()
    assert len(cache) == 0
