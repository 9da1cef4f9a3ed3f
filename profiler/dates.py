"""
Date Normalization

Turns the date bounds of a profile search into epoch seconds.
Accepts numeric epoch text, ISO 8601 and a handful of common formats.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union


DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
)

_NUMERIC = re.compile(r"^[+-]?\d+(\.\d+)?$")
_RELATIVE = re.compile(r"^([+-]?\d+)\s+(second|minute|hour|day|week)s?(\s+ago)?$")


def _parse_relative(text: str, now: datetime) -> Optional[datetime]:
    """Handle now/today/yesterday/tomorrow and "-2 days", "3 hours ago"."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    keywords = {
        "now": now,
        "today": today,
        "midnight": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if text in keywords:
        return keywords[text]

    match = _RELATIVE.match(text)
    if not match:
        return None

    amount = int(match.group(1))
    if match.group(3):
        amount = -amount
    try:
        return now + timedelta(**{f"{match.group(2)}s": amount})
    except OverflowError:
        # Outside the representable date range
        return None


def parse_datetime(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse date/time text into an aware datetime.

    Naive values are taken as UTC. Returns None when nothing matches.
    """
    text = text.strip()
    now = now or datetime.now(timezone.utc)

    parsed = _parse_relative(text.lower(), now)
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_timestamp(value: Union[str, int, float, None]) -> Optional[int]:
    """
    Normalize a search bound to epoch seconds.

    Empty or unparseable values become None (no bound on that axis).
    """
    if value is None or value == "":
        return None

    try:
        if isinstance(value, (int, float)):
            return int(value)

        text = str(value).strip()
        if _NUMERIC.match(text):
            return int(float(text))

        parsed = parse_datetime(text)
        if parsed is None:
            return None
        return int(parsed.timestamp())
    except (ValueError, OverflowError):
        return None
