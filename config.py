import os
from typing import Dict, List

from pydantic import BaseModel

SELECTED_HOST = os.getenv("MOVIEBOX_API_HOST", "h5.aoneroom.com")
HOST_URL = f"https://{SELECTED_HOST}"
API_BASE = f"{HOST_URL}/wefeed-h5-bff"

PORT = int(os.getenv("PORT", "5000"))

# Web player the download endpoint expects requests to come from
PLAYER_ORIGIN = "https://fmoviesunblocked.net"

# Upstream trending endpoint refuses calls without a uid
TRENDING_UID = "5591179548772780352"

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))
STREAM_CONNECT_TIMEOUT = 30
STREAM_READ_TIMEOUT = 120
STREAM_CHUNK_SIZE = 64 * 1024

CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "0"))  # 0 = unbounded

MEDIA_HOST_ALLOWLIST: List[str] = [
    h.strip().lower()
    for h in os.getenv("MEDIA_HOST_ALLOWLIST", "hakunaymatata.com,aoneroom.com").split(",")
    if h.strip()
]


class SubjectType:
    ALL = 0
    MOVIES = 1
    TV_SERIES = 2
    MUSIC = 6


class HeaderProfile(BaseModel):
    """Fixed header set sent with every catalog API call."""
    client_info: str = '{"timezone":"Africa/Nairobi"}'
    accept_language: str = "en-US,en;q=0.5"
    accept: str = "application/json"
    user_agent: str = "okhttp/4.12.0"
    referer: str = HOST_URL
    host: str = SELECTED_HOST
    connection: str = "keep-alive"
    forwarded_for: str = "1.1.1.1"

    def to_headers(self) -> Dict[str, str]:
        return {
            "X-Client-Info": self.client_info,
            "Accept-Language": self.accept_language,
            "Accept": self.accept,
            "User-Agent": self.user_agent,
            "Referer": self.referer,
            "Host": self.host,
            "Connection": self.connection,
            "X-Forwarded-For": self.forwarded_for,
            "CF-Connecting-IP": self.forwarded_for,
            "X-Real-IP": self.forwarded_for,
        }


class MediaHeaderProfile(BaseModel):
    """Headers for fetching media bytes from the CDN."""
    user_agent: str = "okhttp/4.12.0"
    referer: str = PLAYER_ORIGIN + "/"
    origin: str = PLAYER_ORIGIN

    def to_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Referer": self.referer,
            "Origin": self.origin,
        }
