#!/usr/bin/env python3
"""
Tests for the terminal batch downloader helpers
"""
import os
import tempfile
from unittest.mock import Mock

from requests.structures import CaseInsensitiveDict

from batch import download_source, pick_source
from cache import DownloadRef, MediaMetadata, MetadataCache, composite_key, url_key
from transfer import StreamingProxy

MEDIA_URL = "https://bcdnw.hakunaymatata.com/resource/dune.mp4"

SOURCES = [
    {"id": "1", "quality": "480", "directUrl": MEDIA_URL + "?q=480"},
    {"id": "2", "quality": "1080", "directUrl": MEDIA_URL},
]


def test_pick_source():
    print("🧪 Testing source picking...")

    assert pick_source([]) is None
    assert pick_source(SOURCES)["id"] == "1"
    assert pick_source(SOURCES, "1080")["id"] == "2"
    assert pick_source(SOURCES, "4k")["id"] == "1"

    print("✅ Source picking test passed")


def test_download_source_writes_named_file():
    print("🧪 Testing download to disk...")

    body = b"frame" * 50_000
    response = Mock()
    response.status_code = 200
    response.headers = CaseInsensitiveDict({"Content-Type": "video/mp4", "Content-Length": str(len(body))})
    response.iter_content.side_effect = lambda chunk_size: (
        body[i:i + chunk_size] for i in range(0, len(body), chunk_size))
    http = Mock()
    http.get.return_value = response

    cache = MetadataCache()
    cache.put(composite_key("7", 0, 0), MediaMetadata(subject_id="7", title="Dune: Part Two", subject_type=1))
    cache.put(url_key(MEDIA_URL), DownloadRef(subject_id="7", quality="1080"))
    proxy = StreamingProxy(cache, allowed_hosts=["hakunaymatata.com"], http=http)

    with tempfile.TemporaryDirectory() as tmp:
        path = download_source(proxy, SOURCES[1], tmp)
        assert os.path.basename(path) == "dune__part_two_1080.mp4"
        with open(path, "rb") as f:
            assert f.read() == body

    response.close.assert_called()

    print("✅ Download to disk test passed")


def run_all_tests():
    """Run all test functions"""
    print("🚀 Starting batch tests...\n")

    test_functions = [
        test_pick_source,
        test_download_source_writes_named_file,
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
