from typing import Any, Dict, List, Optional
from urllib.parse import quote

from pydantic import BaseModel

from api_client import UpstreamClient, fetch_download_links, fetch_subject_detail
from cache import DownloadRef, MediaMetadata, MetadataCache, composite_key, url_key
from errors import UpstreamError


class DownloadDescriptor(BaseModel):
    id: Optional[str] = None
    quality: str
    directUrl: str
    proxyUrl: str
    size: Optional[Any] = None
    format: str = "mp4"


def _subject(detail: Any) -> Dict[str, Any]:
    if not isinstance(detail, dict):
        return {}
    return detail.get("subject") or {}


def metadata_from_detail(detail: Any, subject_id: str, season: int = 0, episode: int = 0) -> MediaMetadata:
    subject = _subject(detail)
    return MediaMetadata(
        subject_id=subject_id,
        season=season,
        episode=episode,
        title=subject.get("title"),
        original_title=subject.get("originalTitle") or subject.get("originalName"),
        subject_type=subject.get("subjectType"),
    )


def proxy_url_for(base_url: str, direct_url: str) -> str:
    return f"{base_url.rstrip('/')}/api/download/{quote(direct_url, safe='')}"


def cache_subject_info(cache: MetadataCache, detail: Any, subject_id: str) -> Optional[MediaMetadata]:
    """Remember the title from an /info lookup under the subject's movie key."""
    metadata = metadata_from_detail(detail, subject_id)
    if not metadata.title:
        return None
    cache.put(composite_key(subject_id, 0, 0), metadata)
    return metadata


def get_sources(client: UpstreamClient, cache: MetadataCache, subject_id: str, season: int, episode: int,
                base_url: str) -> Dict[str, Any]:
    """Resolve download files for one media unit and register them for proxying.

    `season` is the caller-facing number (1 = first season); the download
    endpoint counts seasons from zero.
    """
    upstream_season = season - 1 if season > 0 else season
    print(f"🎬 Fetching sources for {subject_id} (season={season}, episode={episode})")

    detail = fetch_subject_detail(client, subject_id)
    metadata = metadata_from_detail(detail, subject_id, season, episode)
    detail_path = _subject(detail).get("detailPath")
    if not detail_path:
        raise UpstreamError(f"Missing detail path for subject {subject_id}")

    cache.put(composite_key(subject_id, season, episode), metadata)

    content = fetch_download_links(client, subject_id, upstream_season, episode, detail_path)
    if not isinstance(content, dict):
        return {"downloads": [], "processedSources": [], "raw": content}

    sources: List[DownloadDescriptor] = []
    for f in content.get("downloads") or []:
        direct_url = f.get("url")
        if not direct_url:
            continue
        quality = str(f.get("resolution") or "Unknown")
        cache.put(url_key(direct_url), DownloadRef(
            subject_id=subject_id, season=season, episode=episode, quality=quality,
        ))
        sources.append(DownloadDescriptor(
            id=str(f["id"]) if f.get("id") is not None else None,
            quality=quality,
            directUrl=direct_url,
            proxyUrl=proxy_url_for(base_url, direct_url),
            size=f.get("size"),
        ))

    print(f"✅ Found {len(sources)} downloadable files for {metadata.title or subject_id}")
    content["processedSources"] = [s.model_dump() for s in sources]
    return content
