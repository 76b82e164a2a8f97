"""
Bookable slot computation.

A slot is a candidate start time on the employee's working window for the
requested day. Candidates are generated at a fixed granularity from the
window start and kept when ``[start, start + duration)`` fits inside the
window and does not intersect any live (non-cancelled) appointment of the
same employee.
"""
import datetime
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import select

from slotbook.errors import EmployeeNotFound, InvalidDuration
from slotbook.extensions import db
from slotbook.models import WEEKDAYS, Appointment, Employee, EmployeeSchedule

DEFAULT_GRANULARITY_MINUTES = 30


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    """Half-open interval intersection test."""
    return start_a < end_b and end_a > start_b


class AvailabilityEngine:
    def __init__(self, session=None, granularity_minutes: Optional[int] = None):
        self.session = session if session is not None else db.session
        if granularity_minutes is None:
            granularity_minutes = current_app.config.get(
                "SLOT_GRANULARITY_MINUTES", DEFAULT_GRANULARITY_MINUTES
            )
        if granularity_minutes <= 0:
            raise ValueError("slot granularity must be positive")
        self.granularity = datetime.timedelta(minutes=granularity_minutes)

    def working_window(
        self, employee_id: int, day: datetime.date
    ) -> Optional[Tuple[datetime.datetime, datetime.datetime]]:
        stmt = select(EmployeeSchedule).where(
            EmployeeSchedule.employee_id == employee_id,
            EmployeeSchedule.day_of_week == WEEKDAYS[day.weekday()],
        )
        rule = self.session.scalar(stmt)

        if not rule or not rule.is_available or not rule.start_time or not rule.end_time:
            return None

        start = datetime.datetime.combine(day, rule.start_time)
        end = datetime.datetime.combine(day, rule.end_time)
        if end <= start:
            return None
        return start, end

    def busy_intervals(
        self,
        employee_id: int,
        window_start: datetime.datetime,
        window_end: datetime.datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Tuple[datetime.datetime, datetime.datetime]]:
        stmt = select(Appointment.appointment_date, Appointment.end_at).where(
            Appointment.employee_id == employee_id,
            Appointment.status != "CANCELLED",
            Appointment.appointment_date < window_end,
            Appointment.end_at > window_start,
        )
        if exclude_appointment_id is not None:
            stmt = stmt.where(Appointment.id != exclude_appointment_id)

        rows = self.session.execute(stmt).all()
        return sorted((row[0], row[1]) for row in rows)

    def available_slots(
        self,
        employee_id: int,
        day: datetime.date,
        duration_minutes: int,
        now: Optional[datetime.datetime] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[datetime.datetime]:
        if (
            isinstance(duration_minutes, bool)
            or not isinstance(duration_minutes, int)
            or duration_minutes <= 0
        ):
            raise InvalidDuration()

        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise EmployeeNotFound()
        if not employee.is_active:
            return []

        now = now or datetime.datetime.now()
        if day < now.date():
            return []

        window = self.working_window(employee_id, day)
        if window is None:
            return []
        window_start, window_end = window

        busy = self.busy_intervals(
            employee_id, window_start, window_end, exclude_appointment_id
        )
        duration = datetime.timedelta(minutes=duration_minutes)

        slots = []
        current = window_start
        while current + duration <= window_end:
            slot_end = current + duration
            if current > now and not any(
                overlaps(current, slot_end, busy_start, busy_end)
                for busy_start, busy_end in busy
            ):
                slots.append(current)
            current += self.granularity

        return slots

    def is_slot_available(
        self,
        employee_id: int,
        start: datetime.datetime,
        duration_minutes: int,
        now: Optional[datetime.datetime] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        """True when ``start`` is one of the bookable slots of its day."""
        slots = self.available_slots(
            employee_id,
            start.date(),
            duration_minutes,
            now=now,
            exclude_appointment_id=exclude_appointment_id,
        )
        return start in slots
