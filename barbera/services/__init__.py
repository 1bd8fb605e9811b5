"""
Service layer helpers that orchestrate store adapters and domain logic.
"""

from .availability import AvailabilityService
from .booking import BookingRequest, BookingService
from .catalog import CatalogService
from .context import (
    AppointmentStoreProtocol,
    BookingContext,
    ScheduleStoreProtocol,
    ServiceCatalogProtocol,
    Session,
)
from .schedule_editor import ScheduleService

__all__ = [
    "AppointmentStoreProtocol",
    "AvailabilityService",
    "BookingContext",
    "BookingRequest",
    "BookingService",
    "CatalogService",
    "ScheduleService",
    "ScheduleStoreProtocol",
    "ServiceCatalogProtocol",
    "Session",
]
