import datetime

import pytest

from conftest import at
from slotbook.errors import EmployeeNotFound, InvalidDuration
from slotbook.models import WEEKDAYS, Appointment
from slotbook.services.availability import AvailabilityEngine, overlaps


def book(session, customer_user, business, service, employee, start, minutes, status="PENDING"):
    """Insert an appointment row directly, bypassing the lifecycle."""
    appointment = Appointment(
        customer_id=customer_user.id,
        business_id=business.id,
        service_id=service.id,
        employee_id=employee.id,
        appointment_date=start,
        end_at=start + datetime.timedelta(minutes=minutes),
        active_slot_key=None if status == "CANCELLED" else start,
        status=status,
    )
    session.add(appointment)
    session.commit()
    return appointment


def times(slots):
    return [slot.strftime("%H:%M") for slot in slots]


@pytest.mark.availability
class TestOverlaps:
    def test_touching_intervals_do_not_overlap(self):
        nine, ten, eleven = (at(datetime.date(2030, 1, 1), t) for t in ("09:00", "10:00", "11:00"))
        assert not overlaps(nine, ten, ten, eleven)
        assert not overlaps(ten, eleven, nine, ten)

    def test_contained_interval_overlaps(self):
        day = datetime.date(2030, 1, 1)
        assert overlaps(at(day, "09:00"), at(day, "12:00"), at(day, "10:00"), at(day, "10:30"))


@pytest.mark.availability
class TestAvailableSlots:
    def test_empty_day_hourly_service(self, db_session, employee, booking_day):
        """09:00-17:00 window, 30 minute steps, 60 minute service."""
        slots = AvailabilityEngine().available_slots(employee.id, booking_day, 60)

        assert times(slots)[0] == "09:00"
        assert times(slots)[-1] == "16:00"
        assert len(slots) == 15
        assert slots == sorted(slots)

    def test_empty_day_covers_window(self, db_session, employee, booking_day):
        slots = AvailabilityEngine().available_slots(employee.id, booking_day, 30)

        assert times(slots)[0] == "09:00"
        assert times(slots)[-1] == "16:30"
        assert len(slots) == 16

    def test_booked_interval_is_excluded(
        self, db_session, customer_user, business, service, employee, booking_day
    ):
        book(db_session, customer_user, business, service, employee, at(booking_day, "10:00"), 60)

        slots = times(AvailabilityEngine().available_slots(employee.id, booking_day, 30))

        assert "10:00" not in slots
        assert "10:30" not in slots
        assert "09:30" in slots
        assert "11:00" in slots

    def test_longer_service_cannot_run_into_booking(
        self, db_session, customer_user, business, service, employee, booking_day
    ):
        book(db_session, customer_user, business, service, employee, at(booking_day, "10:00"), 60)

        slots = times(AvailabilityEngine().available_slots(employee.id, booking_day, 60))

        assert "09:00" in slots
        assert "09:30" not in slots
        assert "11:00" in slots

    def test_cancelled_appointment_frees_the_slot(
        self, db_session, customer_user, business, service, employee, booking_day
    ):
        book(
            db_session, customer_user, business, service, employee,
            at(booking_day, "10:00"), 60, status="CANCELLED",
        )

        slots = times(AvailabilityEngine().available_slots(employee.id, booking_day, 60))
        assert "10:00" in slots

    def test_other_employee_bookings_are_ignored(
        self, db_session, customer_user, business, service, employee, second_employee, booking_day
    ):
        book(db_session, customer_user, business, service, employee, at(booking_day, "10:00"), 60)

        slots = times(AvailabilityEngine().available_slots(second_employee.id, booking_day, 60))
        assert "10:00" in slots

    def test_past_date_returns_nothing(self, db_session, employee):
        yesterday = datetime.date.today() - datetime.timedelta(days=1)
        assert AvailabilityEngine().available_slots(employee.id, yesterday, 30) == []

    def test_today_skips_started_slots(self, db_session, employee, booking_day):
        now = at(booking_day, "12:10")
        slots = times(AvailabilityEngine().available_slots(employee.id, booking_day, 30, now=now))

        assert slots[0] == "12:30"
        assert "12:00" not in slots

    def test_day_off_returns_nothing(self, db_session, employee, booking_day):
        rule = next(
            r for r in employee.schedule
            if r.day_of_week == WEEKDAYS[booking_day.weekday()]
        )
        rule.is_available = False
        db_session.commit()

        assert AvailabilityEngine().available_slots(employee.id, booking_day, 30) == []

    def test_duration_longer_than_window(self, db_session, employee, booking_day):
        assert AvailabilityEngine().available_slots(employee.id, booking_day, 9 * 60) == []

    def test_inactive_employee_returns_nothing(self, db_session, employee, booking_day):
        employee.is_active = False
        db_session.commit()

        assert AvailabilityEngine().available_slots(employee.id, booking_day, 30) == []

    def test_custom_granularity(self, db_session, employee, booking_day):
        slots = AvailabilityEngine(granularity_minutes=60).available_slots(
            employee.id, booking_day, 60
        )
        assert times(slots) == [f"{h:02d}:00" for h in range(9, 17)]

    @pytest.mark.parametrize("duration", [0, -30, None, "30", True])
    def test_invalid_duration(self, db_session, employee, booking_day, duration):
        with pytest.raises(InvalidDuration):
            AvailabilityEngine().available_slots(employee.id, booking_day, duration)

    def test_unknown_employee(self, db_session, booking_day):
        with pytest.raises(EmployeeNotFound):
            AvailabilityEngine().available_slots(999999, booking_day, 30)


@pytest.mark.availability
class TestIsSlotAvailable:
    def test_free_aligned_slot(self, db_session, employee, booking_day):
        assert AvailabilityEngine().is_slot_available(employee.id, at(booking_day, "11:00"), 60)

    def test_misaligned_start_is_rejected(self, db_session, employee, booking_day):
        assert not AvailabilityEngine().is_slot_available(
            employee.id, at(booking_day, "11:15"), 60
        )

    def test_booked_slot_is_rejected(
        self, db_session, customer_user, business, service, employee, booking_day
    ):
        book(db_session, customer_user, business, service, employee, at(booking_day, "11:00"), 60)

        assert not AvailabilityEngine().is_slot_available(
            employee.id, at(booking_day, "11:30"), 30
        )

    def test_own_booking_can_be_excluded(
        self, db_session, customer_user, business, service, employee, booking_day
    ):
        appointment = book(
            db_session, customer_user, business, service, employee, at(booking_day, "11:00"), 60
        )

        assert AvailabilityEngine().is_slot_available(
            employee.id,
            at(booking_day, "11:30"),
            60,
            exclude_appointment_id=appointment.id,
        )
