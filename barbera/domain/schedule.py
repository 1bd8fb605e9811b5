"""
Weekly working-hours schedule: normalization, lookup and validation.

Schedule times are wall-clock ``HH:MM`` strings without a timezone. They are
only turned into absolute instants once a calendar date and the barber's
timezone are known (see ``WeeklyAvailability.window_for``).
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import pendulum

from .exceptions import ScheduleValidationError
from .models import TimeRange

logger = logging.getLogger(__name__)

CLOSED_TIME = time(0, 0)
DEFAULT_OPEN = time(9, 0)
DEFAULT_CLOSE = time(17, 0)

DAY_NAMES = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")


def normalize_time(value: str) -> str:
    """
    Normalize a wall-clock time to ``HH:MM``.

    Postgres ``time`` columns come back as ``HH:MM:SS``; the seconds are
    dropped so that ``09:00:00`` and ``09:00`` compare equal.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    parsed = parse_time_of_day(value)
    return parsed.strftime("%H:%M")


def parse_time_of_day(value: str | time) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a ``time`` with seconds stripped."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    match = _TIME_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(hour, minute)


def day_of_week(day: date) -> int:
    """Return the weekday of ``day`` with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class WeeklyAvailability:
    """
    Working hours of one barber on one weekday.

    ``00:00``-``00:00`` marks the day as closed.
    """
    barber_id: str
    day_of_week: int
    start_time: time
    end_time: time

    @property
    def is_closed(self) -> bool:
        return self.start_time == CLOSED_TIME and self.end_time == CLOSED_TIME

    @property
    def is_well_formed(self) -> bool:
        """An open day must open before it closes."""
        return self.is_closed or self.start_time < self.end_time

    @property
    def day_name(self) -> str:
        return DAY_NAMES.get(self.day_of_week, str(self.day_of_week))

    def window_for(self, day: date, timezone: str) -> Optional[TimeRange]:
        """
        Place the working hours on a calendar date in the given timezone.

        Returns None for closed or mis-ordered entries, and for hours that
        collapse on a daylight saving change.
        """
        if self.is_closed or not self.is_well_formed:
            return None

        start = pendulum.datetime(
            day.year, day.month, day.day,
            self.start_time.hour, self.start_time.minute,
            tz=timezone,
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            self.end_time.hour, self.end_time.minute,
            tz=timezone,
        )
        if start >= end:
            return None
        return TimeRange(start=start, end=end)

    @classmethod
    def closed(cls, barber_id: str, day: int) -> "WeeklyAvailability":
        return cls(barber_id=barber_id, day_of_week=day, start_time=CLOSED_TIME, end_time=CLOSED_TIME)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "WeeklyAvailability":
        """
        Build an entry from an ``availability`` table row.

        Raises:
            KeyError: If a required column is missing
            ValueError: If a time or weekday is malformed
        """
        day = int(record["day_of_week"])
        if day not in DAY_NAMES:
            raise ValueError(f"day_of_week must be between 0 and 6, got {day}")

        return cls(
            barber_id=str(record["user_id"]),
            day_of_week=day,
            start_time=parse_time_of_day(record["start_time"]),
            end_time=parse_time_of_day(record["end_time"]),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "user_id": self.barber_id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
        }


def entry_for_weekday(
    entries: Iterable[WeeklyAvailability],
    weekday: int,
) -> Optional[WeeklyAvailability]:
    """
    Return the schedule entry for ``weekday``.

    If the store returned more than one row for the same weekday, the first
    one in retrieval order wins.
    """
    matches = [entry for entry in entries if entry.day_of_week == weekday]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Found %d schedule rows for %s of barber %s; using the first",
            len(matches), DAY_NAMES[weekday], matches[0].barber_id,
        )
    return matches[0]


def default_week(barber_id: str) -> List[WeeklyAvailability]:
    """Starting template for a barber who has not saved a schedule yet."""
    return [
        WeeklyAvailability(
            barber_id=barber_id,
            day_of_week=day,
            start_time=DEFAULT_OPEN,
            end_time=DEFAULT_CLOSE,
        )
        for day in sorted(DAY_NAMES)
    ]


def apply_first_day_to_all(entries: Sequence[WeeklyAvailability]) -> List[WeeklyAvailability]:
    """
    Copy the first entry's hours onto every other open day.

    Closed days stay closed.
    """
    if not entries:
        return []

    first = entries[0]
    result = [first]
    for entry in entries[1:]:
        if entry.is_closed:
            result.append(entry)
        else:
            result.append(replace(entry, start_time=first.start_time, end_time=first.end_time))
    return result


def validate_week(barber_id: str, entries: Sequence[WeeklyAvailability]) -> None:
    """
    Check a full weekly schedule before it replaces the stored one.

    Raises:
        ScheduleValidationError: On foreign entries, duplicate or unknown
            weekdays, or open days that do not open before they close
    """
    if len(entries) > len(DAY_NAMES):
        raise ScheduleValidationError(
            f"A weekly schedule has at most {len(DAY_NAMES)} entries, got {len(entries)}"
        )

    seen: Set[int] = set()
    for entry in entries:
        if entry.barber_id != barber_id:
            raise ScheduleValidationError(
                f"Entry for {entry.day_name} belongs to barber {entry.barber_id}, not {barber_id}"
            )
        if entry.day_of_week not in DAY_NAMES:
            raise ScheduleValidationError(
                f"day_of_week must be between 0 and 6, got {entry.day_of_week}"
            )
        if entry.day_of_week in seen:
            raise ScheduleValidationError(f"Duplicate entry for {entry.day_name}")
        seen.add(entry.day_of_week)

        if not entry.is_well_formed:
            raise ScheduleValidationError(f"{entry.day_name}: Start time must be before end time")
