from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol

import dateparser
from dateutil import parser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


def parse_slot_date(value: str, timezone_name: str) -> date | None:
    """Accept an ISO date ("2025-03-01") or a human phrase ("tomorrow", "next friday")."""
    if not value or not value.strip():
        return None
    value = value.strip()

    try:
        return parser.isoparse(value).date()
    except ValueError:
        pass

    settings = {
        "RETURN_AS_TIMEZONE_AWARE": True,
        "TIMEZONE": timezone_name,
        "TO_TIMEZONE": timezone_name,
        "PREFER_DATES_FROM": "future",
    }
    parsed = dateparser.parse(value, settings=settings)
    if not parsed:
        return None
    return parsed.date()
