"""
Utility helper functions
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def timestamp_now() -> str:
    """Get current UTC timestamp as ISO format string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(ts: Any) -> Optional[datetime]:
    """
    Parse an ISO string or an epoch-milliseconds number.

    Naive values are taken as UTC. Returns None when the value is unusable.
    """
    if ts is None or isinstance(ts, bool):
        return None
    if isinstance(ts, (int, float)):
        try:
            return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(ts, str) or not ts.strip():
        return None

    text = ts.strip()
    if text.isdigit():
        return parse_timestamp(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_epoch_ms(ts: Any) -> Optional[float]:
    """Convert a timestamp (ISO string or epoch ms) to epoch milliseconds."""
    parsed = parse_timestamp(ts)
    if parsed is None:
        return None
    return parsed.timestamp() * 1000


def to_iso(ts: Any) -> Optional[str]:
    """Normalise a timestamp to an ISO string; strings pass through untouched."""
    if isinstance(ts, str) and ts:
        return ts
    parsed = parse_timestamp(ts)
    return parsed.isoformat() if parsed else None
