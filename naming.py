import re
from typing import Optional

from config import SubjectType

_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE)

FALLBACK_BASENAME = "media"


def sanitize(text: str) -> str:
    return _UNSAFE.sub("_", text).lower()


def synthesize_filename(metadata, quality: Optional[str], season: int, episode: int) -> str:
    """Build the attachment filename for a proxied download.

    `metadata` is a MediaMetadata (or None when nothing is cached), e.g.
    Wednesday / series / 1 / 1 / 720p -> wednesday_s01e01_720p.mp4
    """
    name = FALLBACK_BASENAME
    if metadata is not None:
        name = sanitize(metadata.title or metadata.original_title or FALLBACK_BASENAME)
        if metadata.subject_type == SubjectType.TV_SERIES and season > 0:
            name += f"_s{season:02d}"
            if episode > 0:
                name += f"e{episode:02d}"

    if quality and str(quality) != "Unknown":
        name += f"_{sanitize(str(quality))}"
    return f"{name}.mp4"
