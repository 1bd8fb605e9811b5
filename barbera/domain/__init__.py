"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Appointment,
    AppointmentStatus,
    AvailabilityResult,
    CandidateSlot,
    PaymentStatus,
    Service,
    TimeRange,
    UnavailableReason,
)
from .schedule import WeeklyAvailability
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityResult",
    "CandidateSlot",
    "PaymentStatus",
    "Service",
    "SlotCalculator",
    "TimeRange",
    "UnavailableReason",
    "WeeklyAvailability",
]
