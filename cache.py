"""
Short-lived metadata store used to name proxied downloads.

Two kinds of entries share one store:
- `subjectId:season:episode` -> MediaMetadata (title info for a media unit)
- url_key(download_url)      -> DownloadRef (which unit + quality a URL belongs to)

Entries expire CACHE_TTL_SECONDS after they were written. Expiry is checked
when an entry is read (expired entries are dropped right there) and expired
entries are swept whenever something is written. There is no background task.
"""

import hashlib
import threading
import time
from typing import Any, Callable, NamedTuple, Optional

from cacheout import Cache
from pydantic import BaseModel

from config import CACHE_MAX_ENTRIES, CACHE_TTL_SECONDS


class MediaMetadata(BaseModel):
    subject_id: str
    season: int = 0
    episode: int = 0
    title: Optional[str] = None
    original_title: Optional[str] = None
    subject_type: Optional[int] = None


class DownloadRef(BaseModel):
    subject_id: str
    season: int = 0
    episode: int = 0
    quality: Optional[str] = None


class CacheEntry(NamedTuple):
    key: str
    payload: Any
    created_at: float


def composite_key(subject_id: str, season: int, episode: int) -> str:
    return f"{subject_id}:{season}:{episode}"


def url_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class MetadataCache:
    def __init__(self, ttl_seconds: int = CACHE_TTL_SECONDS, maxsize: int = CACHE_MAX_ENTRIES,
                 timer: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._timer = timer
        self._entries = Cache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def put(self, key: str, payload: Any) -> None:
        entry = CacheEntry(key, payload, self._timer())
        with self._lock:
            self._entries.set(key, entry)
            self._entries.delete_expired()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._timer() - entry.created_at >= self.ttl_seconds:
                self._entries.delete(key)
                return None
            return entry.payload

    def __len__(self) -> int:
        with self._lock:
            self._entries.delete_expired()
            return len(self._entries)
