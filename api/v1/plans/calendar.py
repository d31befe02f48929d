"""
Calendar and time-slot math for plan generation.

Dates are plain ``datetime.date`` values: no time of day and no zone, so
stepping one day at a time never drifts. The plan timezone is consulted
only once, to learn what "today" and "now" are for the plan's owner.
"""

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from api.v1.core.exceptions import PlanConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SLOT_HOURS = (9, 12, 15, 18, 21)

_TIME_SLOT_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d$")
_SINGLE_DIGIT_HOUR_RE = re.compile(r"^\d:")


@dataclass(frozen=True)
class PlanWindow:
    """Inclusive date range a generation run covers."""

    start: date
    end: date
    skipped_today: bool = False
    end_extended: bool = False

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def resolve_timezone(name: str | None) -> ZoneInfo:
    tz_name = name or "UTC"
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise PlanConfigurationError(
            f"Unknown plan timezone: {tz_name}", details={"timezone": tz_name}
        ) from e


def plan_wall_clock(timezone_name: str | None, now: datetime) -> tuple[date, time]:
    """Today's date and the current time of day as seen in the plan timezone."""
    local = now.astimezone(resolve_timezone(timezone_name))
    return local.date(), local.time().replace(microsecond=0)


def parse_calendar_date(value: str | date, field: str = "date") -> date:
    """Parse ``YYYY-MM-DD`` (a trailing time part is ignored) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except (AttributeError, ValueError) as e:
        raise PlanConfigurationError(
            f"Invalid {field}: {value!r}, expected YYYY-MM-DD",
            details={field: value},
        ) from e


def parse_trigger_time(value: str | time | None) -> time | None:
    """Accept ``HH:MM`` / ``HH:MM:SS`` strings or a time; blank means no trigger."""
    if value is None or isinstance(value, time):
        return value
    text = value.strip()
    if not text:
        return None
    hour, _, rest = text.partition(":")
    minute = rest.split(":")[0] if rest else "0"
    try:
        return time(int(hour), int(minute or 0))
    except ValueError as e:
        raise PlanConfigurationError(
            f"Invalid trigger_time: {value!r}", details={"trigger_time": value}
        ) from e


def trigger_has_passed(trigger: time, current: time) -> bool:
    """Minute-resolution comparison; reaching the trigger minute counts as passed."""
    return (current.hour, current.minute) >= (trigger.hour, trigger.minute)


def resolve_window(
    start: date,
    end: date | None,
    *,
    today: date,
    current_time: time,
    trigger_time: time | None,
    default_days: int = 30,
) -> PlanWindow:
    """
    Work out the effective date range for a run.

    When the plan's trigger time has already passed today, a run starting
    today starts tomorrow instead. An end before the effective start (or no
    end at all) becomes effective start + ``default_days``.
    """
    skipped_today = False
    if trigger_time is not None and start == today:
        if trigger_has_passed(trigger_time, current_time):
            start = start + timedelta(days=1)
            skipped_today = True

    end_extended = False
    if end is None:
        end = start + timedelta(days=default_days)
    elif end < start:
        end = start + timedelta(days=default_days)
        end_extended = True

    return PlanWindow(
        start=start, end=end, skipped_today=skipped_today, end_extended=end_extended
    )


def normalize_time_slot(value: str | None) -> str | None:
    """
    Normalize a posting time to ``HH:MM:SS``.

    A single-digit hour is zero-padded first. ``HH:MM`` gains seconds,
    ``HH:MM:SS`` is kept and anything longer is cut back to ``HH:MM:00``.
    Returns None for blanks and for values that are still not a valid time
    of day afterwards.
    """
    if value is None:
        return None
    clean = value.strip()
    if not clean:
        return None
    if _SINGLE_DIGIT_HOUR_RE.match(clean):
        clean = f"0{clean}"
    if len(clean) == 5:
        clean = f"{clean}:00"
    elif len(clean) != 8:
        clean = f"{clean[:5]}:00"
    if not _TIME_SLOT_RE.match(clean):
        return None
    return clean


def normalize_time_slots(custom_times: Sequence[str | None] | None) -> list[str]:
    slots: list[str] = []
    for raw in custom_times or []:
        slot = normalize_time_slot(raw)
        if slot is None:
            if raw is not None and raw.strip():
                logger.warning("Dropping invalid time slot", extra={"time_slot": raw})
            continue
        slots.append(slot)
    return slots


def default_time_slots(videos_per_day: int) -> list[str]:
    """The fixed hour ladder, truncated to the plan's daily cadence."""
    return [f"{hour:02d}:00:00" for hour in DEFAULT_SLOT_HOURS[: max(videos_per_day, 0)]]


def resolve_time_slots(
    custom_times: Sequence[str | None] | None, videos_per_day: int
) -> list[str]:
    slots = normalize_time_slots(custom_times)
    if not slots:
        slots = default_time_slots(videos_per_day)
    if not slots:
        raise PlanConfigurationError(
            "Plan has no achievable time slots",
            details={
                "videos_per_day": videos_per_day,
                "custom_times": list(custom_times or []),
            },
        )
    return slots


def iter_calendar_dates(start: date, end: date, max_days: int = 365) -> Iterator[date]:
    """Yield each date from start to end inclusive, at most ``max_days`` of them."""
    current = start
    count = 0
    while current <= end and count < max_days:
        yield current
        count += 1
        current += timedelta(days=1)
