#!/usr/bin/env python3
"""
Tests for the metadata cache TTL behaviour
"""
import threading

from cache import DownloadRef, MediaMetadata, MetadataCache, composite_key, url_key


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_keys():
    """Composite keys join the media coordinates, url keys are stable hashes"""
    print("🧪 Testing cache keys...")

    assert composite_key("123", 1, 2) == "123:1:2"
    url = "https://bcdnw.hakunaymatata.com/resource/abc.mp4?sign=1"
    assert url_key(url) == url_key(url)
    assert url_key(url) != url_key(url + "2")
    assert len(url_key(url)) == 16

    print("✅ Cache keys test passed")


def test_entry_valid_until_ttl():
    """Entries are returned before the TTL and missed from the TTL on"""
    print("🧪 Testing TTL boundary...")

    clock = FakeClock()
    cache = MetadataCache(ttl_seconds=3600, timer=clock)
    payload = MediaMetadata(subject_id="1", title="Dune")
    cache.put("1:0:0", payload)

    for delta in (0, 1, 1800, 3599):
        clock.now = 1_000_000.0 + delta
        assert cache.get("1:0:0") == payload

    clock.now = 1_000_000.0 + 3600
    assert cache.get("1:0:0") is None

    # Lazily removed: going back in time does not resurrect it
    clock.now = 1_000_000.0
    assert cache.get("1:0:0") is None

    print("✅ TTL boundary test passed")


def test_missing_key_is_miss():
    print("🧪 Testing cache miss...")

    cache = MetadataCache(timer=FakeClock())
    assert cache.get("nope") is None

    print("✅ Cache miss test passed")


def test_put_refreshes_timestamp():
    """Overwriting an entry restarts its TTL"""
    print("🧪 Testing overwrite refresh...")

    clock = FakeClock()
    cache = MetadataCache(ttl_seconds=3600, timer=clock)
    cache.put("k", DownloadRef(subject_id="1", quality="720"))
    clock.now += 3000
    cache.put("k", DownloadRef(subject_id="1", quality="1080"))
    clock.now += 1000

    ref = cache.get("k")
    assert ref is not None
    assert ref.quality == "1080"

    print("✅ Overwrite refresh test passed")


def test_write_sweeps_expired_entries():
    print("🧪 Testing sweep on write...")

    clock = FakeClock()
    cache = MetadataCache(ttl_seconds=10, timer=clock)
    for i in range(5):
        cache.put(f"old-{i}", i)
    clock.now += 11
    cache.put("fresh", "x")

    assert len(cache) == 1
    assert cache.get("fresh") == "x"

    print("✅ Sweep on write test passed")


def test_len_counts_only_live_entries():
    """Expired entries that were never read or swept are not counted"""
    print("🧪 Testing live entry count...")

    clock = FakeClock()
    cache = MetadataCache(ttl_seconds=10, timer=clock)
    cache.put("a", 1)
    cache.put("b", 2)
    clock.now += 5
    cache.put("c", 3)
    assert len(cache) == 3

    clock.now += 6
    assert len(cache) == 1
    assert cache.get("c") == 3

    print("✅ Live entry count test passed")


def test_concurrent_access():
    """Parallel writers and readers never see a foreign or partial payload"""
    print("🧪 Testing concurrent cache access...")

    cache = MetadataCache(ttl_seconds=3600)
    errors = []

    def worker(n):
        try:
            for i in range(200):
                key = f"{n}:{i % 10}"
                cache.put(key, (n, i % 10))
                value = cache.get(key)
                if value is not None and value != (n, i % 10):
                    errors.append((key, value))
                cache.get("shared")
                cache.put("shared", n)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert cache.get("shared") in range(8)
    for n in range(8):
        for j in range(10):
            assert cache.get(f"{n}:{j}") == (n, j)

    print("✅ Concurrent cache access test passed")


def run_all_tests():
    """Run all test functions"""
    print("🚀 Starting cache tests...\n")

    test_functions = [
        test_keys,
        test_entry_valid_until_ttl,
        test_missing_key_is_miss,
        test_put_refreshes_timestamp,
        test_write_sweeps_expired_entries,
        test_len_counts_only_live_entries,
        test_concurrent_access,
    ]

    passed = 0
    for test_func in test_functions:
        try:
            test_func()
            passed += 1
        except Exception as e:
            print(f"❌ Test {test_func.__name__} failed: {e}")

    print(f"\n📊 Test Results: {passed}/{len(test_functions)} tests passed")


if __name__ == "__main__":
    run_all_tests()
