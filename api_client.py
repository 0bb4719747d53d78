from typing import Any, Dict, NamedTuple, Optional
from urllib.parse import quote

import requests

from config import API_BASE, PLAYER_ORIGIN, REQUEST_TIMEOUT, TRENDING_UID, HeaderProfile, SubjectType
from errors import UpstreamError


class Envelope(NamedTuple):
    """Upstream body resolved once: wrapped in {"data": ...} or passed through raw."""
    wrapped: bool
    payload: Any


def parse_envelope(body: Any) -> Envelope:
    if isinstance(body, dict) and body.get("data"):
        return Envelope(True, body["data"])
    return Envelope(False, body)


class UpstreamResponse(NamedTuple):
    status_code: int
    envelope: Envelope

    @property
    def payload(self) -> Any:
        return self.envelope.payload


class UpstreamClient:
    def __init__(self, sm, profile: Optional[HeaderProfile] = None, timeout: float = REQUEST_TIMEOUT):
        self.sm = sm
        self.profile = profile or sm.profile
        self.timeout = timeout

    def request(self, target: str, method: str = "GET", params: Optional[Dict[str, Any]] = None,
                body: Optional[Dict[str, Any]] = None,
                headers: Optional[Dict[str, str]] = None) -> UpstreamResponse:
        self.sm.ensure_session()

        url = target if target.startswith("http") else f"{API_BASE}{target}"
        merged = {**self.profile.to_headers(), **(headers or {})}
        try:
            r = self.sm.session.request(
                method, url, params=params, json=body, headers=merged, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            print(f"⏱️ Request to {url} timed out after {self.timeout}s")
            raise UpstreamError(f"Upstream request timed out: {e}", timeout=True) from e
        except requests.exceptions.RequestException as e:
            print(f"🌐 Network error calling {url}: {type(e).__name__}: {e}")
            raise UpstreamError(f"Upstream request failed: {e}") from e

        if not 200 <= r.status_code < 300:
            print(f"⚠️ Request to {url} failed: HTTP {r.status_code} {r.reason}")
            raise UpstreamError(f"Upstream returned HTTP {r.status_code}", status=r.status_code)

        try:
            data = r.json()
        except ValueError:
            data = r.text
        return UpstreamResponse(r.status_code, parse_envelope(data))


def fetch_homepage(client: UpstreamClient):
    return client.request("/web/home").payload


def fetch_trending(client: UpstreamClient, page: int = 0, per_page: int = 18):
    params = {"page": page, "perPage": per_page, "uid": TRENDING_UID}
    return client.request("/web/subject/trending", params=params).payload


def search_subjects(client: UpstreamClient, keyword: str, page: int = 1, per_page: int = 24,
                    subject_type: int = SubjectType.ALL):
    """Keyword search; every item gets a flat `thumbnail` taken from its cover or stills."""
    payload = {"keyword": keyword, "page": page, "perPage": per_page, "subjectType": subject_type}
    content = client.request("/web/subject/search", method="POST", body=payload).payload
    if isinstance(content, dict) and content.get("items"):
        for item in content["items"]:
            item["thumbnail"] = (item.get("cover") or {}).get("url") or (item.get("stills") or {}).get("url")
    return content


def fetch_subject_detail(client: UpstreamClient, subject_id: str):
    return client.request("/web/subject/detail", params={"subjectId": subject_id}).payload


def player_referer(detail_path: str, subject_id: str) -> str:
    return (f"{PLAYER_ORIGIN}/spa/videoPlayPage/movies/{quote(detail_path)}"
            f"?id={subject_id}&type=/movie/detail")


def fetch_download_links(client: UpstreamClient, subject_id: str, season: int, episode: int,
                         detail_path: str):
    """`season` is already zero-based here."""
    headers = {"Referer": player_referer(detail_path, subject_id), "Origin": PLAYER_ORIGIN}
    params = {"subjectId": subject_id, "se": season, "ep": episode}
    return client.request("/web/subject/download", params=params, headers=headers).payload
