"""
Domain models for services, appointments and bookable slots.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges that only touch (one ends exactly when the other starts) do
        not overlap.
        """
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class Service:
    """A bookable offering owned by a barber."""
    id: str
    barber_id: str
    name: str
    price: float
    duration_minutes: int

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Service":
        """Build a service from a ``services`` table row."""
        return cls(
            id=str(record["id"]),
            barber_id=str(record["barber_id"]),
            name=str(record.get("name") or ""),
            price=float(record.get("price") or 0),
            duration_minutes=int(record["duration_minutes"]),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "barber_id": self.barber_id,
            "name": self.name,
            "price": self.price,
            "duration_minutes": self.duration_minutes,
        }


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PAID = "paid"
    FREE = "free"


@dataclass
class Appointment:
    """
    A booked commitment between a barber and a customer.

    ``duration_minutes`` is copied from the service at booking time. Rows
    written before that column existed carry ``None`` and have their
    duration resolved through the service catalog.
    """
    barber_id: str
    customer_id: str
    service_id: str
    appointment_time: DateTime
    duration_minutes: Optional[int] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    payment_status: PaymentStatus = PaymentStatus.PAID
    payment_reference: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_blocking(self) -> bool:
        """Cancelled appointments free their slot again."""
        return self.status != AppointmentStatus.CANCELLED

    def time_range(self, fallback_minutes: int) -> TimeRange:
        """Return the interval this appointment occupies."""
        minutes = self.duration_minutes or fallback_minutes
        return TimeRange(
            start=self.appointment_time,
            end=self.appointment_time.add(minutes=minutes),
        )

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Appointment":
        """
        Build an appointment from an ``appointments`` table row.

        Raises:
            KeyError: If a required column is missing
            ValueError: If a column holds an unparseable value
        """
        appointment_time = pendulum.parse(record["appointment_time"], exact=True)
        if not isinstance(appointment_time, DateTime):
            raise ValueError(f"Not an instant: {record['appointment_time']}")

        duration = record.get("duration_minutes")
        return cls(
            id=str(record["id"]) if record.get("id") is not None else None,
            barber_id=str(record["barber_id"]),
            customer_id=str(record.get("customer_id") or ""),
            service_id=str(record["service_id"]),
            appointment_time=appointment_time,
            duration_minutes=int(duration) if duration is not None else None,
            status=AppointmentStatus(record.get("status") or AppointmentStatus.SCHEDULED.value),
            payment_status=PaymentStatus(record.get("payment_status") or PaymentStatus.PAID.value),
            payment_reference=record.get("payment_intent_id"),
        )

    def to_record(self) -> Dict[str, Any]:
        record = {
            "barber_id": self.barber_id,
            "customer_id": self.customer_id,
            "service_id": self.service_id,
            "appointment_time": self.appointment_time.in_timezone("UTC").to_iso8601_string(),
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_intent_id": self.payment_reference,
        }
        if self.duration_minutes:
            ends_at = self.appointment_time.add(minutes=self.duration_minutes)
            record["ends_at"] = ends_at.in_timezone("UTC").to_iso8601_string()
        if self.id is not None:
            record["id"] = self.id
        return record


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable start time on the selected date.
    """
    time_range: TimeRange

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | h:mm A - h:mm A
        """
        date_str = self.start.format("ddd, YYYY-MM-DD")
        return f"{date_str} | {self.start.format('h:mm A')} - {self.end.format('h:mm A')}"


class UnavailableReason(str, Enum):
    """Why a day produced no slots. These are results, not failures."""
    NOT_SET = "not_set"
    CLOSED = "closed"
    NO_SLOTS_REMAINING = "no_slots_remaining"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    UnavailableReason.NOT_SET: "Barber has not set availability for this day.",
    UnavailableReason.CLOSED: "Barber is closed on this day.",
    UnavailableReason.NO_SLOTS_REMAINING: "No available slots for this day.",
}


@dataclass
class AvailabilityResult:
    """
    Outcome of a slot computation for one barber and one date.

    Either ``slots`` is non-empty and ``reason`` is ``None``, or ``slots`` is
    empty and ``reason`` says why.
    """
    slots: List[CandidateSlot] = field(default_factory=list)
    reason: Optional[UnavailableReason] = None

    @property
    def is_available(self) -> bool:
        return bool(self.slots)

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None

    def start_times(self) -> List[DateTime]:
        return [slot.start for slot in self.slots]
