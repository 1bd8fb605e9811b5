"""
Supabase (PostgREST) implementation of the schedule, appointment and
service stores.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pendulum import DateTime
from postgrest import APIError as PostgrestAPIError
from supabase import Client, create_client

from ..domain.exceptions import RetrievalError, SlotUnavailableError, StoreError
from ..domain.models import Appointment, AppointmentStatus, Service
from ..domain.schedule import WeeklyAvailability

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"
EXCLUSION_VIOLATION = "23P01"


class SupabaseStore:
    """
    Store backed by the ``availability``, ``appointments`` and ``services``
    tables.

    The supabase client is synchronous; every query runs in a worker thread
    so the service layer can await it.
    """

    AVAILABILITY_TABLE = "availability"
    APPOINTMENTS_TABLE = "appointments"
    SERVICES_TABLE = "services"

    def __init__(self, client: Client):
        """
        Initialize the store.

        Args:
            client: Supabase client, created with the service-role key for
                server-side writes or a user token for reads
        """
        self.client = client

    @classmethod
    def connect(cls, url: str, api_key: str) -> "SupabaseStore":
        return cls(create_client(url, api_key))

    # Schedule store

    async def get_weekly_schedule(self, barber_id: str) -> List[WeeklyAvailability]:
        query = (
            self.client.table(self.AVAILABILITY_TABLE)
            .select("*")
            .eq("user_id", barber_id)
            .order("day_of_week")
        )
        rows = await self._execute(query, f"Failed to load availability of {barber_id}")
        return self._parse_rows(rows, WeeklyAvailability.from_record, "availability")

    async def replace_weekly_schedule(
        self,
        barber_id: str,
        entries: Sequence[WeeklyAvailability],
    ) -> List[WeeklyAvailability]:
        delete = self.client.table(self.AVAILABILITY_TABLE).delete().eq("user_id", barber_id)
        await self._execute(delete, f"Failed to clear availability of {barber_id}", error=StoreError)

        if not entries:
            return []

        insert = self.client.table(self.AVAILABILITY_TABLE).insert(
            [entry.to_record() for entry in entries]
        )
        rows = await self._execute(insert, f"Failed to save availability of {barber_id}", error=StoreError)
        return self._parse_rows(rows, WeeklyAvailability.from_record, "availability")

    # Appointment store

    async def get_appointments_for_day(
        self,
        barber_id: str,
        day_start: DateTime,
        day_end: DateTime,
    ) -> List[Appointment]:
        query = (
            self.client.table(self.APPOINTMENTS_TABLE)
            .select("*")
            .eq("barber_id", barber_id)
            .gte("appointment_time", day_start.in_timezone("UTC").to_iso8601_string())
            .lte("appointment_time", day_end.in_timezone("UTC").to_iso8601_string())
            .order("appointment_time")
        )
        rows = await self._execute(query, f"Failed to load appointments of {barber_id}")
        return self._parse_rows(rows, Appointment.from_record, "appointments")

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Appointment]:
        query = (
            self.client.table(self.APPOINTMENTS_TABLE)
            .select("*")
            .eq("payment_intent_id", payment_reference)
            .limit(1)
        )
        rows = await self._execute(query, f"Failed to look up payment {payment_reference}")
        appointments = self._parse_rows(rows, Appointment.from_record, "appointments")
        return appointments[0] if appointments else None

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """
        Insert an appointment.

        The ``payment_intent_id`` unique index makes a repeated insert fail
        with a unique violation, which is answered with the stored row. The
        exclusion constraint on (barber_id, time range) reports a
        double-booking as an exclusion violation.
        """
        record = appointment.to_record()
        query = self.client.table(self.APPOINTMENTS_TABLE).insert(record)

        try:
            response = await asyncio.to_thread(query.execute)
        except PostgrestAPIError as exc:
            if exc.code == UNIQUE_VIOLATION and appointment.payment_reference:
                existing = await self.find_by_payment_reference(appointment.payment_reference)
                if existing is not None:
                    logger.info("Appointment already exists for payment %s", appointment.payment_reference)
                    return existing
            if exc.code == EXCLUSION_VIOLATION:
                raise SlotUnavailableError(
                    f"Barber {appointment.barber_id} is already booked at {appointment.appointment_time}"
                ) from exc
            logger.error("Error creating appointment: %s (code %s)", exc.message, exc.code)
            raise StoreError("Failed to create appointment", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise StoreError("Failed to create appointment", cause=exc) from exc

        created = self._parse_rows(response.data or [], Appointment.from_record, "appointments")
        if not created:
            raise StoreError("Appointment insert returned no row")
        return created[0]

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        query = self.client.table(self.APPOINTMENTS_TABLE).select("*").eq("id", appointment_id).limit(1)
        rows = await self._execute(query, f"Failed to load appointment {appointment_id}")
        appointments = self._parse_rows(rows, Appointment.from_record, "appointments")
        return appointments[0] if appointments else None

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        query = (
            self.client.table(self.APPOINTMENTS_TABLE)
            .update({"status": status.value})
            .eq("id", appointment_id)
        )
        rows = await self._execute(query, f"Failed to update appointment {appointment_id}", error=StoreError)
        appointments = self._parse_rows(rows, Appointment.from_record, "appointments")
        if not appointments:
            raise StoreError(f"Appointment not found: {appointment_id}")
        return appointments[0]

    # Service catalog

    async def get_service(self, service_id: str) -> Optional[Service]:
        query = self.client.table(self.SERVICES_TABLE).select("*").eq("id", service_id).limit(1)
        rows = await self._execute(query, f"Failed to load service {service_id}")
        services = self._parse_rows(rows, Service.from_record, "services")
        return services[0] if services else None

    async def list_services(self, barber_id: str) -> List[Service]:
        query = (
            self.client.table(self.SERVICES_TABLE)
            .select("*")
            .eq("barber_id", barber_id)
            .order("name")
        )
        rows = await self._execute(query, f"Failed to load services of {barber_id}")
        return self._parse_rows(rows, Service.from_record, "services")

    async def add_service(self, service: Service) -> Service:
        query = self.client.table(self.SERVICES_TABLE).insert(service.to_record())
        rows = await self._execute(query, "Failed to add service", error=StoreError)
        services = self._parse_rows(rows, Service.from_record, "services")
        return services[0] if services else service

    async def delete_service(self, service_id: str) -> None:
        query = self.client.table(self.SERVICES_TABLE).delete().eq("id", service_id)
        await self._execute(query, f"Failed to delete service {service_id}", error=StoreError)

    async def _execute(
        self,
        query: Any,
        message: str,
        *,
        error: Type[StoreError] = RetrievalError,
    ) -> List[Dict[str, Any]]:
        """Run a query builder in a worker thread and return its rows."""
        try:
            response = await asyncio.to_thread(query.execute)
        except PostgrestAPIError as exc:
            logger.error("%s: %s (code %s)", message, exc.message, exc.code)
            raise error(message, cause=exc) from exc
        except httpx.HTTPError as exc:
            logger.error("%s: %s", message, exc)
            raise error(message, cause=exc) from exc

        return response.data or []

    @staticmethod
    def _parse_rows(
        rows: Sequence[Dict[str, Any]],
        parse: Callable[[Dict[str, Any]], T],
        table: str,
    ) -> List[T]:
        """Convert rows to domain objects; a malformed row is a retrieval failure."""
        parsed: List[T] = []
        for row in rows:
            try:
                parsed.append(parse(row))
            except (KeyError, ValueError, TypeError) as exc:
                raise RetrievalError(f"Malformed {table} row: {row!r}", cause=exc) from exc
        return parsed
