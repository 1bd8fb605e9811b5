"""
In-memory implementation of the schedule, appointment and service stores.

Used for tests and the CLI's ``--mock`` mode. It enforces the constraints a
production database should enforce: one schedule row per (barber, weekday),
one appointment per payment reference and no overlapping active
appointments for a barber.
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pendulum import DateTime

from ..domain.exceptions import ScheduleValidationError, SlotUnavailableError
from ..domain.models import Appointment, AppointmentStatus, Service
from ..domain.schedule import WeeklyAvailability
from ..domain.slot_calculator import DEFAULT_FALLBACK_SERVICE_MINUTES

logger = logging.getLogger(__name__)

MOCK_DATA_FILE = Path(__file__).parent / "mock_barbera_data.json"


class InMemoryStore:
    """
    Store that keeps every table in plain Python lists.

    All mutations run under a single lock, so the overlap check and the
    insert of an appointment happen atomically.
    """

    def __init__(
        self,
        availability: Sequence[WeeklyAvailability] = (),
        services: Sequence[Service] = (),
        appointments: Sequence[Appointment] = (),
    ):
        self._lock = threading.Lock()
        self._availability: List[WeeklyAvailability] = list(availability)
        self._services: Dict[str, Service] = {service.id: service for service in services}
        self._appointments: List[Appointment] = list(appointments)

    @classmethod
    def from_json(cls, data_file: Path) -> "InMemoryStore":
        """
        Seed a store from a JSON file holding ``availability``, ``services``
        and ``appointments`` arrays in table-row format.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file or one of its rows is malformed
        """
        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Mock data in {data_file} must be a JSON object")

        try:
            return cls(
                availability=[WeeklyAvailability.from_record(r) for r in data.get("availability", [])],
                services=[Service.from_record(r) for r in data.get("services", [])],
                appointments=[Appointment.from_record(r) for r in data.get("appointments", [])],
            )
        except KeyError as exc:
            raise ValueError(f"Mock data row in {data_file} is missing column {exc}") from exc

    @classmethod
    def with_mock_data(cls) -> "InMemoryStore":
        """Store seeded with the bundled demo barbers."""
        return cls.from_json(MOCK_DATA_FILE)

    # Schedule store

    async def get_weekly_schedule(self, barber_id: str) -> List[WeeklyAvailability]:
        return [entry for entry in self._availability if entry.barber_id == barber_id]

    async def replace_weekly_schedule(
        self,
        barber_id: str,
        entries: Sequence[WeeklyAvailability],
    ) -> List[WeeklyAvailability]:
        days = [entry.day_of_week for entry in entries]
        if len(days) != len(set(days)):
            raise ScheduleValidationError("Only one schedule entry per weekday is allowed")

        with self._lock:
            self._availability = [
                entry for entry in self._availability if entry.barber_id != barber_id
            ]
            self._availability.extend(entries)

        return list(entries)

    # Appointment store

    async def get_appointments_for_day(
        self,
        barber_id: str,
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[Appointment]:
        matches = [
            appointment for appointment in self._appointments
            if appointment.barber_id == barber_id
            and day_start <= appointment.appointment_time <= day_end
        ]
        return sorted(matches, key=lambda appointment: appointment.appointment_time)

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Appointment]:
        return self._find_by_reference(payment_reference)

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.payment_reference:
                existing = self._find_by_reference(appointment.payment_reference)
                if existing is not None:
                    return existing

            requested = appointment.time_range(self._duration_of(appointment))
            for other in self._appointments:
                if other.barber_id != appointment.barber_id or not other.is_blocking:
                    continue
                if requested.overlaps(other.time_range(self._duration_of(other))):
                    raise SlotUnavailableError(
                        f"Barber {appointment.barber_id} is already booked at {other.appointment_time}"
                    )

            if appointment.id is None:
                appointment.id = str(uuid.uuid4())
            self._appointments.append(appointment)

        logger.debug("Stored appointment %s", appointment.id)
        return appointment

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        for appointment in self._appointments:
            if appointment.id == appointment_id:
                return appointment
        return None

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        with self._lock:
            for appointment in self._appointments:
                if appointment.id == appointment_id:
                    appointment.status = status
                    return appointment
        raise KeyError(f"Appointment not found: {appointment_id}")

    # Service catalog

    async def get_service(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id)

    async def list_services(self, barber_id: str) -> List[Service]:
        return [service for service in self._services.values() if service.barber_id == barber_id]

    async def add_service(self, service: Service) -> Service:
        with self._lock:
            self._services[service.id] = service
        return service

    async def delete_service(self, service_id: str) -> None:
        with self._lock:
            self._services.pop(service_id, None)

    def _find_by_reference(self, payment_reference: str) -> Optional[Appointment]:
        for appointment in self._appointments:
            if appointment.payment_reference == payment_reference:
                return appointment
        return None

    def _duration_of(self, appointment: Appointment) -> int:
        if appointment.duration_minutes:
            return appointment.duration_minutes
        service = self._services.get(appointment.service_id)
        return service.duration_minutes if service else DEFAULT_FALLBACK_SERVICE_MINUTES
