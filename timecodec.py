"""
timecodec.py -- Finish-time text <-> seconds.

Ultra results routinely run past 24 hours ("26:45:12"), so hours are never
wrapped or capped.
"""

import re
from typing import Optional

_GROUP_RE = re.compile(r"[0-9]+")


def parse_duration(text) -> Optional[int]:
    """
    Convert "H:MM:SS" to seconds. Returns None when the text is not three
    colon-separated integer groups.

    Minutes/seconds >= 60 are accepted as-is ("1:75:00" -> 8100). Blanks
    around a group are ignored ("16: 45:30"); signs are not.
    """
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text:
        return None

    parts = text.split(":")
    if len(parts) != 3:
        return None
    parts = [p.strip() for p in parts]
    if not all(_GROUP_RE.fullmatch(p) for p in parts):
        return None

    hours, minutes, seconds = (int(p) for p in parts)
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds) -> str:
    """Seconds -> "H:MM" (truncated, not rounded)."""
    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}:{minutes:02d}"
