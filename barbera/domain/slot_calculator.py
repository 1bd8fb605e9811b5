"""
Core business logic for calculating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .exceptions import InvalidInputError
from .models import (
    Appointment,
    AvailabilityResult,
    CandidateSlot,
    TimeRange,
    UnavailableReason,
)
from .schedule import WeeklyAvailability, day_of_week, entry_for_weekday

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 5
DEFAULT_FALLBACK_SERVICE_MINUTES = 30


def validate_duration(duration_minutes: object) -> int:
    """
    Ensure a service duration is a positive number of minutes.

    Raises:
        InvalidInputError: If the duration is missing, not an integer or not positive
    """
    if duration_minutes is None:
        raise InvalidInputError("Service duration is required")
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidInputError(f"Service duration must be an integer, got {duration_minutes!r}")
    if duration_minutes <= 0:
        raise InvalidInputError(f"Service duration must be positive, got {duration_minutes}")
    return duration_minutes


class SlotCalculator:
    """
    Calculates bookable start times for one barber on one date.

    Algorithm:
    1. Look up the weekly schedule entry for the date's weekday
    2. Place the working hours on the date in the barber's timezone
    3. Step through the window in fixed increments, keeping every start
       whose service interval ends at or before closing time
    4. Drop candidates that overlap an active appointment
    5. Return the survivors in chronological order
    """

    def __init__(
        self,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        fallback_service_minutes: int = DEFAULT_FALLBACK_SERVICE_MINUTES,
    ):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be positive, got {step_minutes}")
        if fallback_service_minutes <= 0:
            raise ValueError(
                f"fallback_service_minutes must be positive, got {fallback_service_minutes}"
            )
        self.step_minutes = step_minutes
        self.fallback_service_minutes = fallback_service_minutes

    def compute_availability(
        self,
        *,
        selected_date: date,
        duration_minutes: int,
        schedule: Sequence[WeeklyAvailability],
        appointments: Sequence[Appointment],
        timezone: str,
        service_durations: Optional[Dict[str, int]] = None,
    ) -> AvailabilityResult:
        """
        Compute the bookable slots for a date.

        Args:
            selected_date: Calendar date to compute slots for
            duration_minutes: Length of the requested service
            schedule: The barber's weekly entries (any weekdays; the
                matching one is picked here)
            appointments: The barber's appointments on that date
            timezone: IANA timezone the schedule times are expressed in
            service_durations: Service id -> duration, used for appointments
                that do not carry their own duration

        Returns:
            AvailabilityResult with the slots, or an empty list plus the reason

        Raises:
            InvalidInputError: If the duration is not a positive integer
        """
        duration = validate_duration(duration_minutes)
        weekday = day_of_week(selected_date)

        entry = entry_for_weekday(schedule, weekday)
        if entry is None:
            return AvailabilityResult(reason=UnavailableReason.NOT_SET)
        if entry.is_closed:
            return AvailabilityResult(reason=UnavailableReason.CLOSED)

        window = entry.window_for(selected_date, timezone)
        if window is None:
            logger.warning(
                "Schedule for %s of barber %s opens at %s and closes at %s; treating as no slots",
                entry.day_name, entry.barber_id, entry.start_time, entry.end_time,
            )
            return AvailabilityResult(reason=UnavailableReason.NO_SLOTS_REMAINING)

        candidates = self.generate_candidates(window, duration)
        blocked = self.blocked_ranges(appointments, service_durations or {})
        available = self.filter_conflicts(candidates, blocked)

        logger.debug(
            "%s: %d candidates, %d blocked ranges, %d available",
            selected_date, len(candidates), len(blocked), len(available),
        )

        if not available:
            return AvailabilityResult(reason=UnavailableReason.NO_SLOTS_REMAINING)

        return AvailabilityResult(slots=[CandidateSlot(time_range=tr) for tr in available])

    def generate_candidates(self, window: TimeRange, duration_minutes: int) -> List[TimeRange]:
        """
        Step through the working window in fixed increments.

        A candidate ending exactly at closing time is kept.
        """
        candidates: List[TimeRange] = []
        current = window.start

        while True:
            end = current.add(minutes=duration_minutes)
            if end > window.end:
                break
            candidates.append(TimeRange(start=current, end=end))
            current = current.add(minutes=self.step_minutes)

        return candidates

    def blocked_ranges(
        self,
        appointments: Iterable[Appointment],
        service_durations: Dict[str, int],
    ) -> List[TimeRange]:
        """
        Convert active appointments into the intervals they occupy.

        Duration comes from the appointment itself, then from the service it
        references, then from the fallback.
        """
        ranges: List[TimeRange] = []

        for appointment in appointments:
            if not appointment.is_blocking:
                continue

            minutes = appointment.duration_minutes or service_durations.get(appointment.service_id)
            if not minutes:
                logger.warning(
                    "Could not resolve duration of service %s; assuming %d minutes",
                    appointment.service_id, self.fallback_service_minutes,
                )
                minutes = self.fallback_service_minutes

            ranges.append(appointment.time_range(fallback_minutes=minutes))

        return sorted(ranges, key=lambda r: r.start)

    @staticmethod
    def filter_conflicts(
        candidates: Iterable[TimeRange],
        blocked: Sequence[TimeRange],
    ) -> List[TimeRange]:
        """Keep candidates that overlap none of the blocked ranges."""
        return [
            candidate for candidate in candidates
            if not any(candidate.overlaps(busy) for busy in blocked)
        ]

    @staticmethod
    def is_date_selectable(
        day: date,
        today: date,
        schedule: Iterable[WeeklyAvailability],
    ) -> bool:
        """
        Coarse check used to enable dates in a date picker.

        Only the weekly schedule is consulted, so a selectable date may still
        turn out to be fully booked.
        """
        if day < today:
            return False
        entry = entry_for_weekday(schedule, day_of_week(day))
        return entry is not None and not entry.is_closed

    @staticmethod
    def selectable_dates(
        today: date,
        schedule: Iterable[WeeklyAvailability],
        horizon_days: int,
    ) -> List[date]:
        """List the selectable dates from today over the booking horizon."""
        entries = list(schedule)
        return [
            day
            for day in (today + timedelta(days=offset) for offset in range(horizon_days))
            if SlotCalculator.is_date_selectable(day, today, entries)
        ]
