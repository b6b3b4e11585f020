"""Clock helpers. Day boundaries follow the timezone of the supplied instant."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, time, timezone

# Must return timezone-aware datetimes; the SQL store rejects naive ones.
Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Timezone-aware current time in the host's local zone."""
    return datetime.now().astimezone()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)
