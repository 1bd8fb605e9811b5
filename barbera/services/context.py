"""
Store protocols and the request context passed to every service call.

Services never reach for a module-level client or a global "current user".
Whatever they need (store handles, the authenticated session, the barber's
timezone and a clock) arrives in a ``BookingContext`` at call time, which is
what lets tests swap in the in-memory store and a frozen clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Type

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import BarberaError, StoreError
from ..domain.models import Appointment, AppointmentStatus, Service
from ..domain.schedule import WeeklyAvailability

logger = logging.getLogger(__name__)


class ScheduleStoreProtocol(Protocol):
    """Weekly working hours, owned by the barber."""

    async def get_weekly_schedule(self, barber_id: str) -> List[WeeklyAvailability]:
        """Return all entries for a barber in retrieval order (0-7 entries)."""

    async def replace_weekly_schedule(
        self,
        barber_id: str,
        entries: Sequence[WeeklyAvailability],
    ) -> List[WeeklyAvailability]:
        """Delete every entry of the barber, then insert ``entries``."""


class AppointmentStoreProtocol(Protocol):
    """Booked appointments, shared by barber and customer."""

    async def get_appointments_for_day(
        self,
        barber_id: str,
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[Appointment]:
        """Return appointments whose start lies within ``[day_start, day_end]``."""

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Appointment]:
        """Return the appointment created for a payment, if any."""

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """
        Insert an appointment.

        Idempotent on ``payment_reference``: a repeated insert returns the
        stored record. Raises ``SlotUnavailableError`` if the interval
        overlaps another active appointment of the same barber.
        """

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return a single appointment by id."""

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """Change the status of an appointment."""


class ServiceCatalogProtocol(Protocol):
    """Services offered by barbers."""

    async def get_service(self, service_id: str) -> Optional[Service]:
        """Return a service by id, or None if it does not exist."""

    async def list_services(self, barber_id: str) -> List[Service]:
        """Return all services of a barber."""

    async def add_service(self, service: Service) -> Service:
        """Persist a new service."""

    async def delete_service(self, service_id: str) -> None:
        """Remove a service."""


@dataclass(frozen=True)
class Session:
    """The authenticated user making the request."""
    user_id: str
    access_token: Optional[str] = None


@dataclass
class BookingContext:
    """
    Everything a service call may depend on.

    ``session`` is None for trusted server-side callers such as a payment
    confirmation handler.
    """
    schedule_store: ScheduleStoreProtocol
    appointment_store: AppointmentStoreProtocol
    service_catalog: ServiceCatalogProtocol
    timezone: str = "America/New_York"
    session: Optional[Session] = None
    clock: Callable[[], DateTime] = field(default=pendulum.now)

    @classmethod
    def from_store(cls, store, **kwargs) -> "BookingContext":
        """Build a context from a single adapter implementing all three stores."""
        return cls(
            schedule_store=store,
            appointment_store=store,
            service_catalog=store,
            **kwargs,
        )

    def now(self) -> DateTime:
        return self.clock().in_timezone(self.timezone)

    def today(self) -> Date:
        """Today's date in the barber's timezone."""
        return self.now().date()


async def store_call(awaitable, message: str, *, error: Type[StoreError] = StoreError):
    """
    Await a store call, wrapping unexpected adapter errors in ``error``.

    Application errors raised by the store (for example a write-time
    ``SlotUnavailableError``) pass through unchanged.
    """
    try:
        return await awaitable
    except BarberaError:
        raise
    except Exception as exc:
        logger.exception(message)
        raise error(message, cause=exc) from exc
