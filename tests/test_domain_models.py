"""
Tests for domain models.
"""

import pendulum
import pytest

from barbera.domain.models import (
    Appointment,
    AppointmentStatus,
    AvailabilityResult,
    CandidateSlot,
    PaymentStatus,
    Service,
    TimeRange,
    UnavailableReason,
)

from conftest import TZ, at


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_valid_time_range(self):
        """Test creating a valid time range."""
        time_range = TimeRange(start=at(9, 0), end=at(10, 0))

        assert time_range.start == at(9, 0)
        assert time_range.end == at(10, 0)
        assert time_range.duration_minutes() == 60

    def test_invalid_time_range(self):
        """Test that start must be before end."""
        with pytest.raises(ValueError, match="must be before end time"):
            TimeRange(start=at(10, 0), end=at(9, 0))

    def test_empty_range_rejected(self):
        with pytest.raises(ValueError):
            TimeRange(start=at(10, 0), end=at(10, 0))

    def test_overlaps(self):
        """Test overlap detection."""
        range1 = TimeRange(start=at(9, 0), end=at(10, 0))
        range2 = TimeRange(start=at(9, 30), end=at(10, 30))
        range3 = TimeRange(start=at(11, 0), end=at(12, 0))

        assert range1.overlaps(range2)
        assert range2.overlaps(range1)
        assert not range1.overlaps(range3)
        assert not range3.overlaps(range1)

    def test_touching_ranges_do_not_overlap(self):
        range1 = TimeRange(start=at(9, 0), end=at(10, 0))
        range2 = TimeRange(start=at(10, 0), end=at(11, 0))

        assert not range1.overlaps(range2)
        assert not range2.overlaps(range1)

    def test_contained_range_overlaps(self):
        outer = TimeRange(start=at(9, 0), end=at(12, 0))
        inner = TimeRange(start=at(10, 0), end=at(10, 15))

        assert outer.overlaps(inner)
        assert inner.overlaps(outer)

    def test_overlap_across_timezones(self):
        local = TimeRange(start=at(10, 0), end=at(10, 30))
        utc = TimeRange(
            start=pendulum.datetime(2024, 11, 25, 15, 15, tz="UTC"),
            end=pendulum.datetime(2024, 11, 25, 15, 45, tz="UTC"),
        )

        assert local.overlaps(utc)


class TestService:

    def test_from_record(self):
        service = Service.from_record({
            "id": 7,
            "barber_id": "b1",
            "name": "Fade",
            "price": "35.00",
            "duration_minutes": 30,
        })

        assert service.id == "7"
        assert service.price == 35.0
        assert service.duration_minutes == 30
        assert not service.is_free

    def test_zero_price_is_free(self):
        service = Service(id="s", barber_id="b", name="Consult", price=0, duration_minutes=15)

        assert service.is_free

    def test_missing_duration(self):
        with pytest.raises(KeyError):
            Service.from_record({"id": "s", "barber_id": "b", "name": "x", "price": 10})


class TestAppointment:

    def test_from_record_parses_instant(self):
        appointment = Appointment.from_record({
            "id": "a1",
            "barber_id": "b1",
            "customer_id": "c1",
            "service_id": "s1",
            "appointment_time": "2024-11-25T15:00:00+00:00",
            "status": "scheduled",
            "payment_status": "paid",
            "payment_intent_id": "pi_1",
        })

        assert appointment.appointment_time == at(10, 0)
        assert appointment.duration_minutes is None
        assert appointment.payment_reference == "pi_1"
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.is_blocking

    def test_from_record_defaults(self):
        appointment = Appointment.from_record({
            "barber_id": "b1",
            "service_id": "s1",
            "appointment_time": "2024-11-25T15:00:00Z",
        })

        assert appointment.id is None
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.payment_status == PaymentStatus.PAID

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            Appointment.from_record({
                "barber_id": "b1",
                "service_id": "s1",
                "appointment_time": "2024-11-25T15:00:00Z",
                "status": "no-show",
            })

    def test_unknown_payment_status_rejected(self):
        with pytest.raises(ValueError):
            Appointment.from_record({
                "barber_id": "b1",
                "service_id": "s1",
                "appointment_time": "2024-11-25T15:00:00Z",
                "payment_status": "refunded",
            })

    def test_date_only_time_rejected(self):
        with pytest.raises(ValueError):
            Appointment.from_record({
                "barber_id": "b1",
                "service_id": "s1",
                "appointment_time": "2024-11-25",
            })

    def test_to_record_writes_utc_and_end(self):
        appointment = Appointment(
            barber_id="b1",
            customer_id="c1",
            service_id="s1",
            appointment_time=at(10, 0),
            duration_minutes=45,
            payment_reference="pi_1",
        )

        record = appointment.to_record()

        assert pendulum.parse(record["appointment_time"]) == at(10, 0)
        assert pendulum.parse(record["ends_at"]) == at(10, 45)
        assert record["status"] == "scheduled"
        assert record["payment_intent_id"] == "pi_1"
        assert "id" not in record

    def test_cancelled_is_not_blocking(self):
        appointment = Appointment(
            barber_id="b1",
            customer_id="c1",
            service_id="s1",
            appointment_time=at(10, 0),
            status=AppointmentStatus.CANCELLED,
        )

        assert not appointment.is_blocking

    def test_time_range_uses_fallback(self):
        appointment = Appointment(barber_id="b1", customer_id="c1", service_id="s1", appointment_time=at(10, 0))

        assert appointment.time_range(fallback_minutes=30).end == at(10, 30)


class TestCandidateSlot:

    def test_format_display(self):
        slot = CandidateSlot(time_range=TimeRange(start=at(9, 0), end=at(9, 30)))

        assert slot.format_display() == "Mon, 2024-11-25 | 9:00 AM - 9:30 AM"

    def test_afternoon_display(self):
        slot = CandidateSlot(time_range=TimeRange(start=at(13, 5), end=at(13, 50)))

        assert slot.format_display() == "Mon, 2024-11-25 | 1:05 PM - 1:50 PM"
        assert slot.start.timezone_name == TZ


class TestAvailabilityResult:

    def test_available(self):
        slot = CandidateSlot(time_range=TimeRange(start=at(9, 0), end=at(9, 30)))
        result = AvailabilityResult(slots=[slot])

        assert result.is_available
        assert result.message is None
        assert result.start_times() == [at(9, 0)]

    @pytest.mark.parametrize(
        "reason,message",
        [
            (UnavailableReason.NOT_SET, "Barber has not set availability for this day."),
            (UnavailableReason.CLOSED, "Barber is closed on this day."),
            (UnavailableReason.NO_SLOTS_REMAINING, "No available slots for this day."),
        ],
    )
    def test_reason_messages(self, reason, message):
        result = AvailabilityResult(reason=reason)

        assert not result.is_available
        assert result.message == message
        assert result.start_times() == []
