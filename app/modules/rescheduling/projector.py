"""Projection of recurring weekly sessions into concrete upcoming classes.

Every candidate occurrence is built from the session's school-local wall-clock
start time and kept only when it is strictly later than ``now + lead_time``,
no later than ``now + lookahead``, strictly after the cohort start, and not
already claimed by a non-cancelled reschedule request.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Protocol
from uuid import UUID

from app.core.enums import RescheduleStatusEnum
from app.modules.rescheduling.schemas import FutureClassRead, TeacherRef, WeeklySessionView
from app.shared.utils import ensure_utc, start_of_local_day, utc_now

DEFAULT_LEAD_TIME = timedelta(hours=24)
DEFAULT_LOOKAHEAD = timedelta(weeks=2)

# Sunday = 0 ... Saturday = 6
DAY_INDEX = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}


class ClaimedClass(Protocol):
    status: RescheduleStatusEnum
    original_class_date: datetime


def day_index(day_name: str | None) -> int | None:
    """Canonicalize a weekday name; None for unknown values."""
    if not day_name:
        return None
    return DAY_INDEX.get(day_name.strip().lower())


def parse_wall_time(value: str | None) -> time | None:
    """Parse ``HH:MM[:SS]`` to a minute-precision time; None when malformed."""
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour=hour, minute=minute)


def _weekday_index(day: date) -> int:
    return day.isoweekday() % 7


def _cohort_start_instant(cohort_start_date: date | datetime | str | None, tz: tzinfo) -> datetime | None:
    if cohort_start_date is None or cohort_start_date == "":
        return None
    if isinstance(cohort_start_date, str):
        text = cohort_start_date.strip()
        if "T" in text or " " in text:
            cohort_start_date = datetime.fromisoformat(text.replace("Z", "+00:00"))
        else:
            cohort_start_date = date.fromisoformat(text)
    if isinstance(cohort_start_date, datetime):
        if cohort_start_date.tzinfo is None:
            return cohort_start_date.replace(tzinfo=tz).astimezone(UTC)
        return ensure_utc(cohort_start_date)
    return datetime.combine(cohort_start_date, time.min, tzinfo=tz).astimezone(UTC)


def claimed_class_dates(existing_requests: Iterable[ClaimedClass]) -> set[datetime]:
    """Instants already covered by a request that is not cancelled."""
    return {
        ensure_utc(request.original_class_date)
        for request in existing_requests
        if request.status != RescheduleStatusEnum.CANCELLED
    }


def generate_future_classes(
    weekly_sessions: Iterable[WeeklySessionView],
    cohort_id: UUID,
    cohort_start_date: date | datetime | str | None,
    existing_requests: Iterable[ClaimedClass],
    now: datetime | None = None,
    *,
    tz: tzinfo = UTC,
    lead_time: timedelta = DEFAULT_LEAD_TIME,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
) -> list[FutureClassRead]:
    """Return eligible class occurrences ordered by date."""
    now = ensure_utc(now or utc_now())
    min_allowed = now + lead_time
    max_allowed = now + lookahead
    cohort_start = _cohort_start_instant(cohort_start_date, tz)
    claimed = claimed_class_dates(existing_requests)

    future_classes: list[FutureClassRead] = []
    for session in weekly_sessions:
        if not session.day_of_week or not session.start_time or not session.end_time:
            continue
        target_day = day_index(session.day_of_week)
        start_at = parse_wall_time(session.start_time)
        end_at = parse_wall_time(session.end_time)
        if target_day is None or start_at is None or end_at is None:
            continue
        start_label = f"{start_at:%H:%M}"
        end_label = f"{end_at:%H:%M}"

        teacher = None
        if session.teacher_id is not None and session.teacher_name:
            teacher = TeacherRef(id=session.teacher_id, name=session.teacher_name)

        current_day = start_of_local_day(now, tz)
        while current_day < max_allowed:
            if _weekday_index(current_day.date()) == target_day:
                candidate = datetime.combine(current_day.date(), start_at, tzinfo=tz).astimezone(UTC)
                if (
                    min_allowed < candidate <= max_allowed
                    and (cohort_start is None or cohort_start < candidate)
                    and candidate not in claimed
                ):
                    future_classes.append(
                        FutureClassRead(
                            date=candidate,
                            start_time=start_label,
                            end_time=end_label,
                            time_label=format_time_range(start_label, end_label),
                            day_of_week=session.day_of_week,
                            teacher=teacher,
                            weekly_session_id=session.id,
                            cohort_id=cohort_id,
                        ),
                    )
            next_date = current_day.date() + timedelta(days=1)
            current_day = datetime.combine(next_date, time.min, tzinfo=tz)

    future_classes.sort(key=lambda item: item.date)
    return future_classes


def format_class_date(value: datetime, tz: tzinfo = UTC) -> str:
    """Long date, e.g. ``Tuesday, January 7, 2025``."""
    local = ensure_utc(value).astimezone(tz)
    return f"{local:%A}, {local:%B} {local.day}, {local.year}"


def format_class_time(value: datetime, tz: tzinfo = UTC) -> str:
    """12-hour clock time, e.g. ``10:00 AM``."""
    local = ensure_utc(value).astimezone(tz)
    return _twelve_hour(local.hour, local.minute)


def format_time_range(start_time: str, end_time: str) -> str:
    """Display range for ``HH:MM`` strings, e.g. ``10:00 AM - 11:00 AM``."""
    start_at = parse_wall_time(start_time)
    end_at = parse_wall_time(end_time)
    if start_at is None or end_at is None:
        return f"{start_time} - {end_time}"
    return f"{_twelve_hour(start_at.hour, start_at.minute)} - {_twelve_hour(end_at.hour, end_at.minute)}"


def _twelve_hour(hour: int, minute: int) -> str:
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"
