from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# Source feed format, e.g. "2025/01/31 17:04:12 +0000"
CREATED_AT_FORMAT = "%Y/%m/%d %H:%M:%S %z"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def try_parse_created_at(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a feed timestamp into an aware datetime, or None.
    ISO-8601 is accepted as a secondary form; naive values are taken as UTC.
    """
    if not text or not isinstance(text, str):
        return None
    value = text.strip()
    try:
        return datetime.strptime(value, CREATED_AT_FORMAT)
    except ValueError:
        pass
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_created_at(text: Optional[str]) -> datetime:
    """Sort key form: unparseable timestamps collapse to the epoch."""
    return try_parse_created_at(text) or EPOCH


def format_utc(text: Optional[str]) -> str:
    if not text:
        return "No date"
    dt = try_parse_created_at(text)
    if dt is None:
        return str(text)
    return dt.astimezone(timezone.utc).strftime(DISPLAY_FORMAT)
