"""
Shared fixtures: a Monday-to-Friday barber, a couple of services and a
clock frozen on Monday 2024-11-25.
"""

from datetime import time

import pendulum
import pytest

from barbera.adapters.memory_store import InMemoryStore
from barbera.domain.models import Service
from barbera.domain.schedule import WeeklyAvailability
from barbera.services.context import BookingContext

TZ = "America/New_York"
BARBER = "barber-1"
CUSTOMER = "customer-1"
MONDAY = "2024-11-25"


def at(hour: int, minute: int = 0, day: int = 25) -> pendulum.DateTime:
    """An instant on November ``day`` 2024 in the barber's timezone."""
    return pendulum.datetime(2024, 11, day, hour, minute, tz=TZ)


def frozen_clock(hour: int = 8):
    return lambda: at(hour)


def weekday_schedule(barber_id: str = BARBER):
    """Monday to Friday 09:00-17:00, Saturday closed, Sunday not set."""
    entries = [
        WeeklyAvailability(barber_id, day, time(9, 0), time(17, 0))
        for day in range(1, 6)
    ]
    entries.append(WeeklyAvailability.closed(barber_id, 6))
    return entries


@pytest.fixture
def services():
    return [
        Service(id="svc-cut", barber_id=BARBER, name="Haircut", price=30.0, duration_minutes=30),
        Service(id="svc-long", barber_id=BARBER, name="Cut & Color", price=90.0, duration_minutes=60),
        Service(id="svc-free", barber_id=BARBER, name="Consultation", price=0.0, duration_minutes=15),
        Service(id="svc-other", barber_id="barber-2", name="Shave", price=25.0, duration_minutes=20),
    ]


@pytest.fixture
def store(services):
    return InMemoryStore(availability=weekday_schedule(), services=services)


@pytest.fixture
def context(store):
    return BookingContext.from_store(store, timezone=TZ, clock=frozen_clock())
