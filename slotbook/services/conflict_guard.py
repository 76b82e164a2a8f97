"""
Double-booking prevention.

Booking is check-then-act: read availability, then insert. Both steps run in
one critical section keyed by employee id (an in-process mutex plus a row
lock on the employee), and the write is re-validated before commit by an
overlap query and by the unique (employee_id, active_slot_key) index. A
writer that loses the race gets ``SlotUnavailable``; nothing is retried here.
"""
import datetime
from contextlib import contextmanager
from typing import Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from slotbook.errors import (
    AppointmentNotFound,
    BookingError,
    ConcurrentUpdate,
    SlotUnavailable,
)
from slotbook.models import Appointment, Employee
from slotbook.services.availability import AvailabilityEngine
from slotbook.utils.locks import KeyedLocks

employee_locks = KeyedLocks()
appointment_locks = KeyedLocks()


class ConflictGuard:
    def __init__(self, session, availability: AvailabilityEngine):
        self.session = session
        self.availability = availability

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back and translate store errors on failure."""
        try:
            yield
            self.session.commit()
        except BookingError:
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            current_app.logger.info(f"Slot claim rejected by constraint: {e.orig}")
            raise SlotUnavailable()
        except StaleDataError:
            self.session.rollback()
            raise ConcurrentUpdate()
        except Exception:
            self.session.rollback()
            raise

    @contextmanager
    def employee_section(self, employee_id: int):
        """Serialize every booking write for one employee."""
        with employee_locks.hold(employee_id):
            with self._transaction():
                self.session.execute(
                    select(Employee.id)
                    .where(Employee.id == employee_id)
                    .with_for_update()
                )
                yield

    @contextmanager
    def appointment_section(self, appointment_id: int):
        """
        Serialize decisions, cancellation and rescheduling of one appointment.

        Yields the appointment freshly loaded under a row lock.
        """
        with appointment_locks.hold(appointment_id):
            with self._transaction():
                appointment = self.session.get(
                    Appointment,
                    appointment_id,
                    with_for_update=True,
                    populate_existing=True,
                )
                if appointment is None:
                    raise AppointmentNotFound()
                yield appointment

    def claim(
        self,
        appointment: Appointment,
        duration_minutes: int,
        now: Optional[datetime.datetime] = None,
    ) -> Appointment:
        """
        Reserve ``appointment``'s interval for its employee.

        Must run inside ``employee_section`` for that employee. Sets
        ``end_at`` and ``active_slot_key``, flushes, then re-checks that no
        other live appointment overlaps.
        """
        start = appointment.appointment_date
        with self.session.no_autoflush:
            available = self.availability.is_slot_available(
                appointment.employee_id,
                start,
                duration_minutes,
                now=now,
                exclude_appointment_id=appointment.id,
            )
        if not available:
            raise SlotUnavailable()

        appointment.end_at = start + datetime.timedelta(minutes=duration_minutes)
        appointment.active_slot_key = start
        self.session.add(appointment)
        self.session.flush()

        if self.find_overlapping(appointment) is not None:
            raise SlotUnavailable()
        return appointment

    def find_overlapping(self, appointment: Appointment) -> Optional[int]:
        # locking read: sees rows committed after this transaction's snapshot
        stmt = (
            select(Appointment.id)
            .where(
                Appointment.employee_id == appointment.employee_id,
                Appointment.id != appointment.id,
                Appointment.status != "CANCELLED",
                Appointment.appointment_date < appointment.end_at,
                Appointment.end_at > appointment.appointment_date,
            )
            .limit(1)
            .with_for_update()
        )
        return self.session.scalar(stmt)

    @staticmethod
    def release(appointment: Appointment):
        """Free the slot key so the interval can be booked again."""
        appointment.active_slot_key = None
