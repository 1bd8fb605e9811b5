"""
Application service for resolving a barber's bookable slots.

The service fetches the weekly schedule, the day's appointments and the
service durations through the stores in the ``BookingContext`` and delegates
the computation itself to the domain-level ``SlotCalculator``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pendulum

from ..domain.exceptions import InvalidInputError, RetrievalError
from ..domain.models import Appointment, AvailabilityResult
from ..domain.schedule import WeeklyAvailability
from ..domain.slot_calculator import SlotCalculator, validate_duration
from .context import BookingContext, store_call

logger = logging.getLogger(__name__)

DEFAULT_BOOKING_HORIZON_DAYS = 60


def parse_selected_date(value: str | date) -> date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        InvalidInputError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


class AvailabilityService:
    """
    Orchestrates store reads and slot calculation.

    Retrieval failures are raised as ``RetrievalError`` before any slots are
    computed. "Not set", "closed" and "fully booked" are regular results.
    """

    def __init__(
        self,
        slot_calculator: SlotCalculator | None = None,
        booking_horizon_days: int = DEFAULT_BOOKING_HORIZON_DAYS,
    ) -> None:
        self._slot_calculator = slot_calculator or SlotCalculator()
        self._booking_horizon_days = booking_horizon_days

    @property
    def slot_calculator(self) -> SlotCalculator:
        return self._slot_calculator

    async def find_slots(
        self,
        context: BookingContext,
        *,
        barber_id: str,
        selected_date: str | date,
        service_id: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> AvailabilityResult:
        """
        Compute the bookable slots of a barber for a date.

        The requested length comes from ``duration_minutes`` if given,
        otherwise from the service referenced by ``service_id``.

        Raises:
            InvalidInputError: On a past or malformed date, an unknown
                service or a non-positive duration
            RetrievalError: If the schedule, appointments or services
                cannot be read
        """
        day = parse_selected_date(selected_date)
        if day < context.today():
            raise InvalidInputError(f"Cannot book on {day}, it is in the past")

        if duration_minutes is None:
            duration_minutes = await self._resolve_requested_duration(context, service_id)
        duration = validate_duration(duration_minutes)

        schedule = await self.fetch_schedule(context, barber_id)
        appointments = await self.fetch_appointments(context, barber_id, day)
        service_durations = await self._resolve_service_durations(context, appointments)

        result = self._slot_calculator.compute_availability(
            selected_date=day,
            duration_minutes=duration,
            schedule=schedule,
            appointments=appointments,
            timezone=context.timezone,
            service_durations=service_durations,
        )
        logger.debug(
            "Barber %s on %s: %d slot(s)%s",
            barber_id, day, len(result.slots),
            f" ({result.reason.value})" if result.reason else "",
        )
        return result

    async def selectable_dates(self, context: BookingContext, *, barber_id: str) -> List[date]:
        """Dates a customer may pick, from today over the booking horizon."""
        schedule = await self.fetch_schedule(context, barber_id)
        return self._slot_calculator.selectable_dates(
            today=context.today(),
            schedule=schedule,
            horizon_days=self._booking_horizon_days,
        )

    async def is_date_selectable(
        self,
        context: BookingContext,
        *,
        barber_id: str,
        selected_date: str | date,
    ) -> bool:
        day = parse_selected_date(selected_date)
        schedule = await self.fetch_schedule(context, barber_id)
        return self._slot_calculator.is_date_selectable(day, context.today(), schedule)

    async def fetch_schedule(self, context: BookingContext, barber_id: str) -> List[WeeklyAvailability]:
        """Read the barber's weekly schedule."""
        return await store_call(
            context.schedule_store.get_weekly_schedule(barber_id),
            f"Failed to check availability of barber {barber_id}",
            error=RetrievalError,
        )

    async def fetch_appointments(
        self,
        context: BookingContext,
        barber_id: str,
        day: date,
    ) -> List[Appointment]:
        """Read the barber's appointments starting on ``day`` in the barber's timezone."""
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=context.timezone)
        day_end = day_start.end_of("day")
        return await store_call(
            context.appointment_store.get_appointments_for_day(barber_id, day_start, day_end),
            f"Failed to load appointments of barber {barber_id} on {day}",
            error=RetrievalError,
        )

    async def _resolve_requested_duration(
        self,
        context: BookingContext,
        service_id: Optional[str],
    ) -> int:
        if not service_id:
            raise InvalidInputError("Either a service or a duration is required")

        service = await store_call(
            context.service_catalog.get_service(service_id),
            f"Failed to load service {service_id}",
            error=RetrievalError,
        )
        if service is None:
            raise InvalidInputError(f"Unknown service: {service_id}")
        return service.duration_minutes

    async def _resolve_service_durations(
        self,
        context: BookingContext,
        appointments: Iterable[Appointment],
    ) -> Dict[str, int]:
        """Look up durations for appointments that do not carry their own."""
        durations: Dict[str, int] = {}
        missing = {
            appointment.service_id
            for appointment in appointments
            if appointment.is_blocking and not appointment.duration_minutes
        }

        for service_id in sorted(missing):
            service = await store_call(
                context.service_catalog.get_service(service_id),
                f"Failed to load service {service_id}",
                error=RetrievalError,
            )
            if service is not None:
                durations[service_id] = service.duration_minutes

        return durations
