"""
Tests for availability service.
"""

import asyncio
from datetime import date, time

import pendulum
import pytest

from barbera.adapters.memory_store import InMemoryStore
from barbera.domain.exceptions import InvalidInputError, RetrievalError
from barbera.domain.models import Appointment, AppointmentStatus, UnavailableReason
from barbera.domain.schedule import WeeklyAvailability
from barbera.domain.slot_calculator import SlotCalculator
from barbera.services.availability import AvailabilityService, parse_selected_date
from barbera.services.context import BookingContext

from conftest import BARBER, MONDAY, TZ, at, frozen_clock, weekday_schedule


class UnreachableScheduleStore:
    """Schedule store whose backend is down."""

    def __init__(self):
        self.calls = 0

    async def get_weekly_schedule(self, barber_id):
        self.calls += 1
        raise ConnectionError("connection reset by peer")

    async def replace_weekly_schedule(self, barber_id, entries):
        raise ConnectionError("connection reset by peer")


class UnreachableAppointmentStore(InMemoryStore):

    async def get_appointments_for_day(self, barber_id, day_start, day_end):
        raise TimeoutError("read timed out")


def _book(store, start, service_id="svc-cut", duration=None, status=AppointmentStatus.SCHEDULED):
    store._appointments.append(
        Appointment(
            barber_id=BARBER,
            customer_id="someone",
            service_id=service_id,
            appointment_time=start,
            duration_minutes=duration,
            status=status,
        )
    )


class TestFindSlots:

    def test_full_day_from_service_duration(self, context):
        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, service_id="svc-cut",
            )
        )

        assert len(result.slots) == 91
        assert result.slots[0].start == at(9, 0)
        assert result.slots[-1].start == at(16, 30)

    def test_explicit_duration_overrides_service(self, context):
        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, service_id="svc-cut", duration_minutes=60,
            )
        )

        assert result.slots[-1].start == at(16, 0)

    def test_existing_appointment_blocks_its_service_duration(self, store, context):
        """An appointment without a stored duration blocks for its service's length."""
        _book(store, at(10, 0), service_id="svc-long")

        starts = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, service_id="svc-cut",
            )
        ).start_times()

        assert len(starts) == 91 - 17
        assert at(9, 30) in starts
        assert at(9, 35) not in starts
        assert at(10, 55) not in starts
        assert at(11, 0) in starts

    def test_deleted_service_falls_back_to_thirty_minutes(self, store, context):
        _book(store, at(10, 0), service_id="svc-deleted")

        starts = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
            )
        ).start_times()

        assert at(10, 25) not in starts
        assert at(10, 30) in starts

    def test_cancelled_appointment_frees_slot(self, store, context):
        _book(store, at(10, 0), duration=30, status=AppointmentStatus.CANCELLED)

        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
            )
        )

        assert len(result.slots) == 91

    def test_other_days_and_barbers_are_ignored(self, store, context):
        _book(store, at(10, 0, day=26), duration=30)
        store._appointments.append(
            Appointment(
                barber_id="barber-2", customer_id="x", service_id="svc-other",
                appointment_time=at(10, 0), duration_minutes=20,
            )
        )

        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
            )
        )

        assert len(result.slots) == 91

    def test_schedule_times_with_seconds(self, services):
        store = InMemoryStore(
            availability=[
                WeeklyAvailability.from_record({
                    "user_id": BARBER, "day_of_week": 1, "start_time": "09:00:00", "end_time": "10:00:00",
                })
            ],
            services=services,
        )
        context = BookingContext.from_store(store, timezone=TZ, clock=frozen_clock())

        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=60,
            )
        )

        assert result.start_times() == [at(9, 0)]

    def test_unset_and_closed_days_are_results(self, context):
        service = AvailabilityService()

        sunday = asyncio.run(
            service.find_slots(context, barber_id=BARBER, selected_date="2024-12-01", duration_minutes=30)
        )
        saturday = asyncio.run(
            service.find_slots(context, barber_id=BARBER, selected_date="2024-11-30", duration_minutes=30)
        )

        assert sunday.reason == UnavailableReason.NOT_SET
        assert saturday.reason == UnavailableReason.CLOSED

    def test_unknown_barber_has_no_schedule(self, context):
        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id="nobody", selected_date=MONDAY, duration_minutes=30,
            )
        )

        assert result.reason == UnavailableReason.NOT_SET

    def test_today_is_bookable_without_cutoff(self, store):
        """Same-day booking offers the whole day, even past slots."""
        context = BookingContext.from_store(store, timezone=TZ, clock=frozen_clock(hour=15))

        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
            )
        )

        assert result.slots[0].start == at(9, 0)

    def test_today_follows_barber_timezone(self, store):
        """At 02:00 UTC on Tuesday it is still Monday evening in New York."""
        clock = lambda: pendulum.datetime(2024, 11, 26, 2, 0, tz="UTC")
        context = BookingContext.from_store(store, timezone=TZ, clock=clock)

        result = asyncio.run(
            AvailabilityService().find_slots(
                context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
            )
        )

        assert result.is_available

    def test_custom_step(self, context):
        service = AvailabilityService(slot_calculator=SlotCalculator(step_minutes=30))

        result = asyncio.run(
            service.find_slots(context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30)
        )

        assert len(result.slots) == 16


class TestInvalidInput:

    def test_past_date(self, context):
        with pytest.raises(InvalidInputError, match="in the past"):
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date="2024-11-24", duration_minutes=30,
                )
            )

    @pytest.mark.parametrize("raw", ["25/11/2024", "2024-13-01", "tomorrow", ""])
    def test_malformed_date(self, context, raw):
        with pytest.raises(InvalidInputError):
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date=raw, duration_minutes=30,
                )
            )

    def test_unknown_service(self, context):
        with pytest.raises(InvalidInputError, match="Unknown service"):
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date=MONDAY, service_id="svc-missing",
                )
            )

    def test_no_service_and_no_duration(self, context):
        with pytest.raises(InvalidInputError):
            asyncio.run(AvailabilityService().find_slots(context, barber_id=BARBER, selected_date=MONDAY))

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration(self, context, duration):
        with pytest.raises(InvalidInputError):
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=duration,
                )
            )

    def test_parse_selected_date(self):
        assert parse_selected_date("2024-11-25") == date(2024, 11, 25)
        assert parse_selected_date(date(2024, 11, 25)) == date(2024, 11, 25)
        assert parse_selected_date(at(23, 0)) == date(2024, 11, 25)


class TestRetrievalFailures:

    def test_schedule_store_failure_is_not_an_empty_schedule(self, store):
        schedule_store = UnreachableScheduleStore()
        context = BookingContext(
            schedule_store=schedule_store,
            appointment_store=store,
            service_catalog=store,
            timezone=TZ,
            clock=frozen_clock(),
        )

        with pytest.raises(RetrievalError) as exc_info:
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
                )
            )

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert exc_info.value.retryable
        assert schedule_store.calls == 1

    def test_appointment_store_failure(self, services):
        store = UnreachableAppointmentStore(availability=weekday_schedule(), services=services)
        context = BookingContext.from_store(store, timezone=TZ, clock=frozen_clock())

        with pytest.raises(RetrievalError) as exc_info:
            asyncio.run(
                AvailabilityService().find_slots(
                    context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30,
                )
            )

        assert isinstance(exc_info.value.cause, TimeoutError)

    def test_retry_after_recovery(self, store):
        context = BookingContext(
            schedule_store=UnreachableScheduleStore(),
            appointment_store=store,
            service_catalog=store,
            timezone=TZ,
            clock=frozen_clock(),
        )
        service = AvailabilityService()

        with pytest.raises(RetrievalError):
            asyncio.run(service.find_slots(context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30))

        context.schedule_store = store
        result = asyncio.run(
            service.find_slots(context, barber_id=BARBER, selected_date=MONDAY, duration_minutes=30)
        )

        assert len(result.slots) == 91


class TestCalendar:

    def test_selectable_dates(self, context):
        dates = asyncio.run(AvailabilityService(booking_horizon_days=7).selectable_dates(context, barber_id=BARBER))

        assert [day.isoformat() for day in dates] == [
            "2024-11-25", "2024-11-26", "2024-11-27", "2024-11-28", "2024-11-29",
        ]

    def test_default_horizon(self, context):
        dates = asyncio.run(AvailabilityService().selectable_dates(context, barber_id=BARBER))

        assert dates[0].isoformat() == "2024-11-25"
        assert (dates[-1] - dates[0]).days < 60

    def test_barber_without_schedule_has_no_dates(self, context):
        assert asyncio.run(AvailabilityService().selectable_dates(context, barber_id="nobody")) == []

    def test_is_date_selectable(self, context):
        service = AvailabilityService()

        assert asyncio.run(service.is_date_selectable(context, barber_id=BARBER, selected_date="2024-11-26"))
        assert not asyncio.run(service.is_date_selectable(context, barber_id=BARBER, selected_date="2024-11-30"))
        assert not asyncio.run(service.is_date_selectable(context, barber_id=BARBER, selected_date="2024-11-18"))

    def test_schedule_with_a_single_open_day(self, services):
        store = InMemoryStore(
            availability=[WeeklyAvailability(BARBER, 3, time(9, 0), time(12, 0))],
            services=services,
        )
        context = BookingContext.from_store(store, timezone=TZ, clock=frozen_clock())

        dates = asyncio.run(AvailabilityService(booking_horizon_days=14).selectable_dates(context, barber_id=BARBER))

        assert [day.isoformat() for day in dates] == ["2024-11-27", "2024-12-04"]
