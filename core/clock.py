"""
core/clock.py -- The one place that reads wall-clock time.

Services take a `Clock` (zero-arg callable returning an aware UTC datetime) at
construction so tests can freeze or advance time. Production wiring passes
utc_now.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Serialize an aware datetime as fixed-width UTC ISO 8601.

    Fixed width (always microseconds, always +00:00) keeps lexicographic
    order equal to chronological order, which the store relies on when it
    compares stored expiry strings in SQL.
    """
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value).astimezone(timezone.utc)
