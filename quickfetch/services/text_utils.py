"""
Text and duration helpers shared by the provider adapters.
"""

import re
from typing import Optional

from quickfetch.models.video import MAX_TEXT_LENGTH


# PT#H#M#S with every component optional; live streams may report days (P1DT2H).
ISO8601_DURATION_PATTERN = re.compile(
    r'^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$'
)


def sanitize_text(text: Optional[str]) -> str:
    """
    Make provider free text safe to embed in the canonical record.

    Angle brackets are removed, surrounding whitespace trimmed and the result
    truncated to MAX_TEXT_LENGTH characters. This is not a replacement for
    escaping at render time.
    """
    if not text:
        return ""
    return re.sub(r'[<>]', '', str(text)).strip()[:MAX_TEXT_LENGTH]


def parse_iso8601_duration(duration: Optional[str]) -> int:
    """
    Convert an ISO-8601 duration such as ``PT1H2M10S`` into seconds.

    Unparseable or empty input yields 0.
    """
    if not duration:
        return 0

    match = ISO8601_DURATION_PATTERN.match(duration.strip().upper())
    if not match:
        return 0

    days, hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: int) -> str:
    """Format seconds as ``H:MM:SS`` when there are hours, otherwise ``M:SS``."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
