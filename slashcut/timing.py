"""
Time conversion between milliseconds, seconds, minutes, and frames.

All document timing is stored as integer frames; these helpers turn the
human-friendly strings typed into commands ("1.5s", "2m", "30f", "1000")
into frames and back.
"""

import math
import re
from typing import Optional

# Bare numbers are milliseconds for backwards compatibility
_BARE_NUMBER = re.compile(r'^\d+(?:\.\d+)?$')
_WITH_UNIT = re.compile(r'^(\d+(?:\.\d+)?)(ms|s|m|f)$', re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def ms_to_frames(milliseconds: float, fps: int) -> int:
    """Convert milliseconds to the nearest whole frame."""
    return round_half_up(milliseconds / 1000 * fps)


def frames_to_ms(frames: int, fps: int) -> int:
    """Convert frames to whole milliseconds."""
    return round_half_up(frames / fps * 1000)


def seconds_to_frames(seconds: float, fps: int) -> int:
    return round_half_up(seconds * fps)


def frames_to_seconds(frames: int, fps: int) -> float:
    return frames / fps


def parse_duration(text: str, fps: int) -> Optional[int]:
    """
    Parse a duration string into frames.

    Supported formats:
    - "1000"  - milliseconds (bare number)
    - "500ms" - milliseconds
    - "1.5s"  - seconds
    - "2m"    - minutes
    - "30f"   - frames

    Returns None for negative values or anything that matches neither form.
    """
    if text is None:
        return None
    trimmed = str(text).strip()

    if _BARE_NUMBER.match(trimmed):
        return ms_to_frames(float(trimmed), fps)

    match = _WITH_UNIT.match(trimmed)
    if not match:
        return None

    value = float(match.group(1))
    unit = match.group(2).lower()

    if unit == 'f':
        return round_half_up(value)
    if unit == 'ms':
        return ms_to_frames(value, fps)
    if unit == 's':
        return seconds_to_frames(value, fps)
    return seconds_to_frames(value * 60, fps)


def format_frames_to_duration(frames: int, fps: int) -> str:
    """
    Format frames using the most readable unit.

    Examples at 30fps:
        0   -> "0f"
        15  -> "15f"
        90  -> "3s"
        45  -> "1.5s"
        3600 -> "2m"
    """
    if frames == 0:
        return "0f"

    seconds = frames_to_seconds(frames, fps)

    if seconds < 1:
        return f"{frames}f"

    if seconds >= 60 and frames % (fps * 60) == 0:
        return f"{frames // (fps * 60)}m"

    if frames % fps == 0:
        return f"{frames // fps}s"

    return f"{round_half_up(frames * 10 / fps) / 10:.1f}s"
