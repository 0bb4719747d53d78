import os
from http.client import IncompleteRead
from typing import Dict, Iterator, List, Optional
from urllib.parse import urljoin, urlparse

import requests
from fastapi import BackgroundTasks
from fastapi.responses import StreamingResponse
from tqdm import tqdm

from cache import MetadataCache, composite_key
from config import (
    MEDIA_HOST_ALLOWLIST,
    STREAM_CHUNK_SIZE,
    STREAM_CONNECT_TIMEOUT,
    STREAM_READ_TIMEOUT,
    MediaHeaderProfile,
)
from errors import InvalidTarget, StreamFailure, UpstreamError
from naming import synthesize_filename

PASSTHROUGH_HEADERS = ("Content-Type", "Content-Length", "Content-Range", "Accept-Ranges")
REDIRECT_CODES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5


def host_allowed(url: str, allowed_hosts: List[str]) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    if not host:
        return False
    return any(host == allowed or host.endswith("." + allowed) for allowed in allowed_hosts)


class MediaStream:
    """An open upstream media response plus the headers to hand to the client."""

    def __init__(self, response: requests.Response, filename: str, chunk_size: int):
        self.response = response
        self.filename = filename
        self.chunk_size = chunk_size
        self.status_code = response.status_code
        self.headers: Dict[str, str] = {
            name: response.headers[name] for name in PASSTHROUGH_HEADERS if response.headers.get(name)
        }
        self.headers["Content-Disposition"] = f'attachment; filename="{filename}"'

    @property
    def total_size(self) -> int:
        return int(self.headers.get("Content-Length", 0))

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            for chunk in self.response.iter_content(chunk_size=self.chunk_size):
                if chunk:
                    yield chunk
        except (requests.exceptions.RequestException, IncompleteRead) as e:
            print(f"💥 Media stream for {self.filename} broke mid-transfer: {e}")
            raise StreamFailure(f"Upstream media connection failed: {e}") from e
        finally:
            self.response.close()

    def close(self):
        self.response.close()


class StreamingProxy:
    """Relays media bytes from the CDN without buffering whole files."""

    def __init__(self, cache: MetadataCache, profile: Optional[MediaHeaderProfile] = None,
                 allowed_hosts: Optional[List[str]] = None, http: Optional[requests.Session] = None,
                 chunk_size: int = STREAM_CHUNK_SIZE):
        self.cache = cache
        self.profile = profile or MediaHeaderProfile()
        self.allowed_hosts = [h.lower() for h in (allowed_hosts if allowed_hosts is not None else MEDIA_HOST_ALLOWLIST)]
        self.http = http if http is not None else requests.Session()
        self.chunk_size = chunk_size

    def check_target(self, raw_url: str):
        if not host_allowed(raw_url, self.allowed_hosts):
            print(f"🚫 Refusing to proxy {raw_url}")
            raise InvalidTarget(f"Host not allowed for proxying: {urlparse(raw_url).hostname or raw_url}")

    def resolve_filename(self, cache_key: str) -> str:
        ref = self.cache.get(cache_key)
        if ref is None:
            return synthesize_filename(None, None, 0, 0)
        metadata = self.cache.get(composite_key(ref.subject_id, ref.season, ref.episode))
        return synthesize_filename(metadata, ref.quality, ref.season, ref.episode)

    def open_stream(self, raw_url: str, cache_key: str, range_header: Optional[str] = None) -> MediaStream:
        self.check_target(raw_url)
        filename = self.resolve_filename(cache_key)

        headers = self.profile.to_headers()
        if range_header:
            headers["Range"] = range_header

        print(f"📥 Proxying download as {filename}")
        url = raw_url
        r = self._get(url, headers)
        hops = 0
        # Every redirect hop must pass the allow-list
        while r.status_code in REDIRECT_CODES and r.headers.get("Location"):
            r.close()
            hops += 1
            if hops > MAX_REDIRECTS:
                raise UpstreamError(f"Too many redirects from media host (>{MAX_REDIRECTS})")
            url = urljoin(url, r.headers["Location"])
            self.check_target(url)
            r = self._get(url, headers)

        if r.status_code >= 400:
            r.close()
            raise UpstreamError(f"Media host returned HTTP {r.status_code}", status=r.status_code)
        return MediaStream(r, filename, self.chunk_size)

    def _get(self, url: str, headers: Dict[str, str]) -> requests.Response:
        try:
            return self.http.get(url, headers=headers, stream=True, allow_redirects=False,
                                 timeout=(STREAM_CONNECT_TIMEOUT, STREAM_READ_TIMEOUT))
        except requests.exceptions.Timeout as e:
            raise UpstreamError(f"Media host timed out: {e}", timeout=True) from e
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Media host unreachable: {e}") from e

    def proxy_download(self, raw_url: str, cache_key: str, range_header: Optional[str] = None) -> StreamingResponse:
        stream = self.open_stream(raw_url, cache_key, range_header)
        # Runs after the body is sent or the client goes away
        cleanup = BackgroundTasks()
        cleanup.add_task(stream.close)
        return StreamingResponse(
            stream.iter_chunks(),
            status_code=stream.status_code,
            headers=stream.headers,
            background=cleanup,
        )


def save_stream(stream: MediaStream, download_directory: str = "./") -> str:
    """Write a media stream to disk with a progress bar, returns the file path."""
    os.makedirs(download_directory, exist_ok=True)
    full_file_path = os.path.join(download_directory, stream.filename)
    total_size = stream.total_size

    progress = tqdm(
        total=total_size if total_size > 0 else None,
        unit='B',
        unit_scale=True,
        unit_divisor=1024,
        desc=stream.filename,
        ncols=100,
        smoothing=0.1,
        bar_format='{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]'
    )
    try:
        with open(full_file_path, "wb") as f:
            for chunk in stream.iter_chunks():
                f.write(chunk)
                progress.update(len(chunk))
    finally:
        progress.close()

    print(f"✅ Downloaded successfully: {full_file_path}")
    return full_file_path
