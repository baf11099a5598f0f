"""Text keywords for an image, for engines searched by query instead of upload."""

from __future__ import annotations

import re
from typing import Optional

_SPLIT = re.compile(r"[-_\s]+")
_EXTENSION = re.compile(r"\.[^/.]+$")

IMAGE_SEARCH_KEYWORDS = (
    "reverse image search",
    "find similar images",
    "image lookup",
    "photo search",
    "visual search",
    "duplicate image finder",
    "image source finder",
    "reverse photo search",
)

QUALITY_KEYWORDS = (
    "high resolution",
    "HD image",
    "high quality",
    "original image",
    "source image",
    "better quality",
)

SEARCH_TIPS = (
    "Use descriptive filenames for better search results",
    "High-resolution images typically yield more matches",
    "Try multiple search engines for comprehensive results",
    "Consider cropping to focus on main subject",
    "Remove watermarks if possible for better matching",
)

MAX_PRIMARY = 5
MAX_SECONDARY = 8
MAX_SUGGESTIONS = 12


def _unique(items: list[str], limit: int) -> list[str]:
    return list(dict.fromkeys(items))[:limit]


def extract_image_keywords(
    filename: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> dict[str, list[str]]:
    """Derive primary / secondary / suggestion keywords from a filename and size."""
    stem = _EXTENSION.sub("", filename).lower()
    words = [w.strip() for w in _SPLIT.split(stem) if len(w) > 2]

    primary = words[:3]
    secondary = words[3:]

    if width and height:
        if width > 1920 or height > 1080:
            primary += ["high resolution", "HD"]
        if width > height:
            secondary += ["landscape", "wide image"]
        elif height > width:
            secondary += ["portrait", "vertical image"]
        else:
            secondary.append("square image")

    suggestions = [*IMAGE_SEARCH_KEYWORDS, *QUALITY_KEYWORDS]

    return {
        "primary": _unique(primary, MAX_PRIMARY),
        "secondary": _unique(secondary, MAX_SECONDARY),
        "suggestions": _unique(suggestions, MAX_SUGGESTIONS),
    }


def generate_search_query(keywords: dict[str, list[str]], search_type: str = "broad") -> str:
    if search_type == "specific":
        return " ".join(keywords["primary"][:3])
    return " ".join(keywords["primary"][:2] + keywords["secondary"][:1])
