"""RFC3339 timestamp helpers shared by frontmatter, state and the API wrapper."""

import re
from datetime import datetime, timezone
from typing import Optional

RFC3339_PATTERN = re.compile(
    r'^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$'
)

# Confluence sometimes omits the colon in the offset (e.g. +0000)
_COMPACT_OFFSET = re.compile(r'([+-]\d{2})(\d{2})$')


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp into an aware datetime.

    Raises:
        ValueError: If value is not a valid RFC3339 timestamp
    """
    match = RFC3339_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"invalid RFC3339 timestamp: {value!r}")
    date_part, time_part, fraction, offset = match.groups()
    micros = ""
    if fraction:
        micros = "." + (fraction[1:] + "000000")[:6]
    if offset in ("Z", "z"):
        offset = "+00:00"
    return datetime.fromisoformat(f"{date_part}T{time_part}{micros}{offset}")


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as second-precision RFC3339 in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_remote_time(*candidates: Optional[str]) -> Optional[datetime]:
    """Return the first candidate that parses as a timestamp, else None."""
    for candidate in candidates:
        if not candidate or not str(candidate).strip():
            continue
        text = _COMPACT_OFFSET.sub(r'\1:\2', str(candidate).strip())
        try:
            return parse_rfc3339(text)
        except ValueError:
            continue
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
