"""
Appointment state machine.

    PENDING --(approval rule satisfied)--> CONFIRMED --(end passed, sweep)--> COMPLETED
    PENDING | CONFIRMED --(rejection or customer cancel)--> CANCELLED

This module is the only writer of ``status``, ``owner_approved`` and
``employee_approved``. Every operation receives the caller's ``AuthContext``
explicitly and runs in a ConflictGuard section, so approvals, cancellation
and rescheduling of one appointment never interleave.
"""
import datetime
import logging
from typing import Optional

from flask import current_app
from sqlalchemy import or_, select

from slotbook.auth import AuthContext
from slotbook.errors import (
    AlreadyDecided,
    AppointmentNotFound,
    BusinessNotFound,
    CancellationNotAllowed,
    ConcurrentUpdate,
    EmployeeNotFound,
    InvalidStateTransition,
    ServiceNotFound,
    Unauthorized,
)
from slotbook.extensions import db
from slotbook.models import Appointment, Business, Employee, Service
from slotbook.services import events
from slotbook.services.availability import AvailabilityEngine
from slotbook.services.conflict_guard import ConflictGuard

logger = logging.getLogger(__name__)

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"
OPEN_STATUSES = (PENDING, CONFIRMED)

OWNER = "OWNER"
EMPLOYEE = "EMPLOYEE"

POLICY_BOTH = "BOTH"
POLICY_EITHER = "EITHER"


class AppointmentLifecycle:
    def __init__(self, session=None, policy: Optional[str] = None, granularity_minutes=None):
        self.session = session if session is not None else db.session
        if policy is None:
            policy = current_app.config.get("APPROVAL_POLICY", POLICY_BOTH)
        policy = policy.upper()
        if policy not in (POLICY_BOTH, POLICY_EITHER):
            raise ValueError(f"Unknown approval policy: {policy}")
        self.policy = policy
        self.availability = AvailabilityEngine(self.session, granularity_minutes)
        self.guard = ConflictGuard(self.session, self.availability)

    # -- creation ---------------------------------------------------------

    def _load_bookable(self, business_id, service_id, employee_id):
        business = self.session.get(Business, business_id)
        if business is None:
            raise BusinessNotFound()

        service = self.session.get(Service, service_id)
        if service is None or service.business_id != business.id or not service.is_active:
            raise ServiceNotFound("Service not found for this business")

        employee = self.session.get(Employee, employee_id)
        if employee is None or employee.business_id != business.id or not employee.is_active:
            raise EmployeeNotFound("Employee not found for this business")

        return business, service, employee

    def create(
        self,
        actor: AuthContext,
        business_id: int,
        service_id: int,
        employee_id: int,
        appointment_date: datetime.datetime,
        notes: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> Appointment:
        actor.require_role("CUSTOMER")

        with self.guard.employee_section(employee_id):
            business, service, employee = self._load_bookable(
                business_id, service_id, employee_id
            )
            appointment = Appointment(
                customer_id=actor.user_id,
                business_id=business.id,
                service_id=service.id,
                employee_id=employee.id,
                appointment_date=appointment_date,
                status=PENDING,
                owner_approved=None,
                employee_approved=None,
                price_at_book=service.price,
                notes=notes,
            )
            self.guard.claim(appointment, service.duration, now=now)
            events.record_event(self.session, appointment, events.APPOINTMENT_CREATED)

        current_app.logger.info(
            f"Appointment {appointment.id} booked: employee {employee_id} "
            f"at {appointment_date.isoformat()}"
        )
        return appointment

    # -- approvals --------------------------------------------------------

    def _authorize_party(self, actor: AuthContext, appointment: Appointment, party: str):
        if party == OWNER:
            business = appointment.business
            if (
                actor.role != "BUSINESS_OWNER"
                or business is None
                or business.owner_id != actor.user_id
            ):
                raise Unauthorized("Only the business owner can decide for the business")
        else:
            employee = appointment.employee
            if actor.role != "STAFF" or employee is None or employee.user_id != actor.user_id:
                raise Unauthorized("Only the assigned employee can decide for the employee")

    def aggregate_status(self, appointment: Appointment) -> str:
        decisions = (appointment.owner_approved, appointment.employee_approved)
        if any(decision is False for decision in decisions):
            return CANCELLED
        if self.policy == POLICY_EITHER and any(decision is True for decision in decisions):
            return CONFIRMED
        if all(decision is True for decision in decisions):
            return CONFIRMED
        return PENDING

    def _decide(self, actor: AuthContext, appointment_id: int, party: str, approved: bool):
        field = "owner_approved" if party == OWNER else "employee_approved"

        with self.guard.appointment_section(appointment_id) as appointment:
            self._authorize_party(actor, appointment, party)

            recorded = getattr(appointment, field)
            if recorded is not None:
                if recorded == approved:
                    # same decision again: no-op
                    return appointment
                raise AlreadyDecided()

            if appointment.status not in OPEN_STATUSES:
                raise InvalidStateTransition(
                    f"Cannot record a decision on a {appointment.status} appointment"
                )

            previous_status = appointment.status
            setattr(appointment, field, approved)
            new_status = self.aggregate_status(appointment)
            appointment.status = new_status

            if new_status == CANCELLED:
                appointment.cancelled_at = datetime.datetime.now()
                self.guard.release(appointment)
                events.record_event(
                    self.session, appointment, events.APPOINTMENT_CANCELLED, by=party
                )
            elif new_status == CONFIRMED and previous_status != CONFIRMED:
                events.record_event(self.session, appointment, events.APPOINTMENT_CONFIRMED)
            else:
                event_type = (
                    events.OWNER_DECISION_RECORDED
                    if party == OWNER
                    else events.EMPLOYEE_DECISION_RECORDED
                )
                events.record_event(self.session, appointment, event_type)

        current_app.logger.info(
            f"Appointment {appointment_id}: {party.lower()} "
            f"{'approved' if approved else 'rejected'}, status {new_status}"
        )
        return appointment

    def approve_as_owner(self, actor: AuthContext, appointment_id: int) -> Appointment:
        return self._decide(actor, appointment_id, OWNER, True)

    def reject_as_owner(self, actor: AuthContext, appointment_id: int) -> Appointment:
        return self._decide(actor, appointment_id, OWNER, False)

    def approve_as_employee(self, actor: AuthContext, appointment_id: int) -> Appointment:
        return self._decide(actor, appointment_id, EMPLOYEE, True)

    def reject_as_employee(self, actor: AuthContext, appointment_id: int) -> Appointment:
        return self._decide(actor, appointment_id, EMPLOYEE, False)

    # -- customer actions -------------------------------------------------

    def _check_customer_may_change(self, actor, appointment, now, error_cls, actor_error_cls=None):
        if actor.role != "CUSTOMER" or appointment.customer_id != actor.user_id:
            raise (actor_error_cls or error_cls)(
                "Only the customer who booked can change this appointment"
            )
        if appointment.status not in OPEN_STATUSES:
            raise error_cls(f"Appointment is already {appointment.status}")
        if appointment.appointment_date <= now:
            raise error_cls("Appointment date has already passed")

    def cancel(
        self,
        actor: AuthContext,
        appointment_id: int,
        now: Optional[datetime.datetime] = None,
    ) -> Appointment:
        now = now or datetime.datetime.now()

        with self.guard.appointment_section(appointment_id) as appointment:
            self._check_customer_may_change(actor, appointment, now, CancellationNotAllowed)
            appointment.status = CANCELLED
            appointment.cancelled_at = now
            self.guard.release(appointment)
            events.record_event(
                self.session, appointment, events.APPOINTMENT_CANCELLED, by="CUSTOMER"
            )

        current_app.logger.info(f"Appointment {appointment_id} cancelled by customer")
        return appointment

    def reschedule(
        self,
        actor: AuthContext,
        appointment_id: int,
        appointment_date: Optional[datetime.datetime] = None,
        employee_id: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> Appointment:
        """
        Move an open appointment to a new start and/or employee.

        The new interval goes through the same conflict checks as a new
        booking. Both approvals are cleared and the appointment returns to
        PENDING. A call that only changes ``notes`` keeps status and approvals.
        """
        now = now or datetime.datetime.now()

        with self.guard.appointment_section(appointment_id) as appointment:
            self._check_customer_may_change(
                actor, appointment, now, InvalidStateTransition, Unauthorized
            )

            if notes is not None:
                appointment.notes = notes

            moving = (
                appointment_date is not None
                and appointment_date != appointment.appointment_date
            ) or (employee_id is not None and employee_id != appointment.employee_id)
            if not moving:
                return appointment

            target_employee_id = employee_id if employee_id is not None else appointment.employee_id
            service = appointment.service

            with self.guard.employee_section(target_employee_id):
                _, service, employee = self._load_bookable(
                    appointment.business_id, service.id, target_employee_id
                )
                appointment.employee_id = employee.id
                if appointment_date is not None:
                    appointment.appointment_date = appointment_date
                appointment.status = PENDING
                appointment.owner_approved = None
                appointment.employee_approved = None
                self.guard.claim(appointment, service.duration, now=now)
                events.record_event(
                    self.session, appointment, events.APPOINTMENT_RESCHEDULED
                )

        current_app.logger.info(
            f"Appointment {appointment_id} rescheduled to employee "
            f"{target_employee_id} at {appointment.appointment_date.isoformat()}"
        )
        return appointment

    # -- completion sweep -------------------------------------------------

    def complete_elapsed(self, now: Optional[datetime.datetime] = None) -> int:
        """
        Mark CONFIRMED appointments whose end has passed as COMPLETED.

        Idempotent and safe to run from several workers: each appointment is
        re-checked under its own lock before it changes.
        """
        now = now or datetime.datetime.now()
        candidate_ids = self.session.scalars(
            select(Appointment.id).where(
                Appointment.status == CONFIRMED, Appointment.end_at <= now
            )
        ).all()
        self.session.rollback()

        completed = 0
        for appointment_id in candidate_ids:
            try:
                with self.guard.appointment_section(appointment_id) as appointment:
                    if appointment.status != CONFIRMED or appointment.end_at > now:
                        continue
                    appointment.status = COMPLETED
                    events.record_event(
                        self.session, appointment, events.APPOINTMENT_COMPLETED
                    )
                    completed += 1
            except (ConcurrentUpdate, AppointmentNotFound) as e:
                logger.warning(f"Skipping appointment {appointment_id} in sweep: {e}")

        return completed


def visible_to(actor: AuthContext):
    """SQL filter for the appointments ``actor`` may see."""
    if actor.role == "CUSTOMER":
        return Appointment.customer_id == actor.user_id
    if actor.role == "BUSINESS_OWNER":
        return Appointment.business_id.in_(
            select(Business.id).where(Business.owner_id == actor.user_id)
        )
    if actor.role == "STAFF":
        return Appointment.employee_id.in_(
            select(Employee.id).where(Employee.user_id == actor.user_id)
        )
    return Appointment.id.is_(None)


def get_visible_appointment(actor: AuthContext, appointment_id: int, session=None) -> Appointment:
    session = session if session is not None else db.session
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFound()

    allowed = session.scalar(
        select(Appointment.id).where(Appointment.id == appointment_id, visible_to(actor))
    )
    if allowed is None:
        raise Unauthorized("You cannot view this appointment")
    return appointment


def scoped_appointments(actor: AuthContext, status: Optional[str] = None):
    stmt = select(Appointment).where(visible_to(actor))
    if status:
        statuses = [s.strip().upper() for s in status.split(",") if s.strip()]
        stmt = stmt.where(or_(*(Appointment.status == s for s in statuses)))
    return stmt.order_by(Appointment.appointment_date.desc())
