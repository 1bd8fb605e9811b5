"""
Application service for writing and cancelling appointments.

A booking is written once payment has been confirmed (or immediately for a
free service). The write is idempotent on the payment reference and is
re-checked against the current slot list, so a slot that was free when the
customer picked it but got booked meanwhile is refused instead of
double-booked. The store's insert path enforces the same rule atomically.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    InvalidInputError,
    PermissionDeniedError,
    SlotUnavailableError,
)
from ..domain.models import Appointment, AppointmentStatus, PaymentStatus
from .availability import AvailabilityService
from .context import BookingContext, store_call

logger = logging.getLogger(__name__)

FREE_REFERENCE_PREFIX = "free_"


@dataclass(frozen=True)
class BookingRequest:
    """What a customer asks for when booking a slot."""
    barber_id: str
    customer_id: str
    service_id: str
    appointment_time: DateTime
    payment_reference: Optional[str] = None

    @classmethod
    def from_payment_intent(
        cls,
        payment_intent_id: str,
        metadata: Mapping[str, str],
    ) -> "BookingRequest":
        """
        Build a request from a succeeded payment intent.

        The checkout stores ``appointmentTime``, ``barberId``, ``customerId``
        and ``serviceId`` in the intent's metadata; the intent id becomes the
        idempotency key of the booking.

        Raises:
            InvalidInputError: If metadata is missing or the time is unparseable
        """
        required = ("appointmentTime", "barberId", "customerId", "serviceId")
        missing = [key for key in required if not metadata.get(key)]
        if missing:
            raise InvalidInputError(
                f"Payment {payment_intent_id} is missing metadata: {', '.join(missing)}"
            )

        return cls(
            barber_id=metadata["barberId"],
            customer_id=metadata["customerId"],
            service_id=metadata["serviceId"],
            appointment_time=parse_instant(metadata["appointmentTime"]),
            payment_reference=payment_intent_id,
        )


def parse_instant(value: str) -> DateTime:
    """
    Parse an ISO-8601 instant.

    Raises:
        InvalidInputError: If the value is not a date-time
    """
    try:
        parsed = pendulum.parse(value, exact=True)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid appointment time {value!r}") from exc
    if not isinstance(parsed, DateTime):
        raise InvalidInputError(f"Invalid appointment time {value!r}")
    return parsed


class BookingService:
    """Creates and cancels appointments."""

    def __init__(self, availability_service: AvailabilityService | None = None) -> None:
        self._availability = availability_service or AvailabilityService()

    async def create_appointment(
        self,
        context: BookingContext,
        request: BookingRequest,
    ) -> Appointment:
        """
        Write an appointment for a confirmed payment.

        Calling this twice with the same payment reference returns the
        appointment created by the first call.

        Raises:
            InvalidInputError: If the request is incomplete or the service is unknown
            PermissionDeniedError: If the session user is not the customer
            SlotUnavailableError: If the slot is no longer bookable
            StoreError: If a store call fails
        """
        for name in ("barber_id", "customer_id", "service_id"):
            if not getattr(request, name):
                raise InvalidInputError(f"Missing required field: {name}")

        session = context.session
        if session is not None and session.user_id != request.customer_id:
            raise PermissionDeniedError("Appointments can only be booked for yourself")

        if request.payment_reference:
            existing = await store_call(
                context.appointment_store.find_by_payment_reference(request.payment_reference),
                "Failed to look up appointment by payment",
            )
            if existing is not None:
                logger.info("Appointment already exists for payment %s", request.payment_reference)
                return existing

        service = await store_call(
            context.service_catalog.get_service(request.service_id),
            f"Failed to load service {request.service_id}",
        )
        if service is None or service.barber_id != request.barber_id:
            raise InvalidInputError(
                f"Barber {request.barber_id} does not offer service {request.service_id}"
            )

        payment_reference = request.payment_reference
        if payment_reference is None:
            if not service.is_free:
                raise InvalidInputError("A payment reference is required for paid services")
            payment_reference = f"{FREE_REFERENCE_PREFIX}{uuid.uuid4().hex}"

        start = request.appointment_time.in_timezone(context.timezone)
        availability = await self._availability.find_slots(
            context,
            barber_id=request.barber_id,
            selected_date=start.date(),
            duration_minutes=service.duration_minutes,
        )
        if start not in availability.start_times():
            raise SlotUnavailableError(
                availability.message
                or f"{start.format('YYYY-MM-DD HH:mm')} is no longer available"
            )

        appointment = Appointment(
            barber_id=request.barber_id,
            customer_id=request.customer_id,
            service_id=service.id,
            appointment_time=start,
            duration_minutes=service.duration_minutes,
            status=AppointmentStatus.SCHEDULED,
            payment_status=PaymentStatus.FREE if service.is_free else PaymentStatus.PAID,
            payment_reference=payment_reference,
        )

        stored = await store_call(
            context.appointment_store.insert_appointment(appointment),
            "Failed to create appointment",
        )
        logger.info(
            "Booked appointment %s with barber %s at %s (payment %s)",
            stored.id, stored.barber_id, stored.appointment_time, stored.payment_reference,
        )
        return stored

    async def confirm_payment(
        self,
        context: BookingContext,
        payment_intent_id: str,
        metadata: Mapping[str, str],
    ) -> Appointment:
        """Book the appointment described by a succeeded payment intent."""
        request = BookingRequest.from_payment_intent(payment_intent_id, metadata)
        return await self.create_appointment(context, request)

    async def cancel_appointment(self, context: BookingContext, appointment_id: str) -> Appointment:
        """
        Cancel an appointment. The record is kept with status ``cancelled``.

        Raises:
            InvalidInputError: If the appointment does not exist or is already cancelled
            PermissionDeniedError: If the session user is neither customer nor barber
        """
        appointment = await store_call(
            context.appointment_store.get_appointment(appointment_id),
            f"Failed to load appointment {appointment_id}",
        )
        if appointment is None:
            raise InvalidInputError(f"Appointment not found: {appointment_id}")

        session = context.session
        if session is not None and session.user_id not in (appointment.customer_id, appointment.barber_id):
            raise PermissionDeniedError("Only the customer or the barber may cancel an appointment")

        if appointment.status == AppointmentStatus.CANCELLED:
            raise InvalidInputError(f"Appointment {appointment_id} is already cancelled")

        cancelled = await store_call(
            context.appointment_store.update_status(appointment_id, AppointmentStatus.CANCELLED),
            f"Failed to cancel appointment {appointment_id}",
        )
        logger.info("Cancelled appointment %s", appointment_id)
        return cancelled
