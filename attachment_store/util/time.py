"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a user supplied timestamp into a naive UTC datetime."""
    if not value:
        return None
    parsed = parser.parse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
