"""
Appointment domain events.

Each lifecycle transition writes one ``AppointmentEvent`` row in the same
transaction as the state change, so an event exists if and only if the
transition was committed. ``dispatch_pending_events`` turns undispatched rows
into in-app notifications and stamps them, inside one transaction, so every
event is delivered to the notification table once.
"""
import datetime
import logging

from sqlalchemy import select

from slotbook.models import AppointmentEvent, Notification

logger = logging.getLogger(__name__)

APPOINTMENT_CREATED = "AppointmentCreated"
APPOINTMENT_CONFIRMED = "AppointmentConfirmed"
APPOINTMENT_CANCELLED = "AppointmentCancelled"
APPOINTMENT_RESCHEDULED = "AppointmentRescheduled"
APPOINTMENT_COMPLETED = "AppointmentCompleted"
OWNER_DECISION_RECORDED = "OwnerDecisionRecorded"
EMPLOYEE_DECISION_RECORDED = "EmployeeDecisionRecorded"


def record_event(session, appointment, event_type, **payload):
    payload.setdefault("status", appointment.status)
    payload.setdefault("appointmentDate", appointment.appointment_date.isoformat())
    event = AppointmentEvent(
        appointment=appointment, event_type=event_type, payload=payload
    )
    session.add(event)
    return event


def _staff_users(appointment):
    users = []
    business = appointment.business
    if business is not None:
        users.append(business.owner_id)
    employee = appointment.employee
    if employee is not None and employee.user_id is not None:
        users.append(employee.user_id)
    return users


def _when(appointment):
    return appointment.appointment_date.strftime("%Y-%m-%d %H:%M")


def notifications_for(event):
    """Return (user_id, title, message) tuples for one event."""
    appointment = event.appointment
    payload = event.payload or {}
    service_name = appointment.service.name if appointment.service else "service"
    when = _when(appointment)

    if event.event_type == APPOINTMENT_CREATED:
        return [
            (user_id, "New appointment request", f"{service_name} on {when} awaits approval")
            for user_id in _staff_users(appointment)
        ]

    if event.event_type == APPOINTMENT_CONFIRMED:
        return [
            (
                appointment.customer_id,
                "Appointment confirmed",
                f"Your {service_name} appointment on {when} is confirmed",
            )
        ]

    if event.event_type == APPOINTMENT_CANCELLED:
        if payload.get("by") == "CUSTOMER":
            return [
                (user_id, "Appointment cancelled", f"{service_name} on {when} was cancelled by the customer")
                for user_id in _staff_users(appointment)
            ]
        return [
            (
                appointment.customer_id,
                "Appointment declined",
                f"Your {service_name} appointment on {when} was declined",
            )
        ]

    if event.event_type == APPOINTMENT_RESCHEDULED:
        return [
            (user_id, "Appointment rescheduled", f"{service_name} moved to {when}, approval needed")
            for user_id in _staff_users(appointment)
        ]

    if event.event_type == APPOINTMENT_COMPLETED:
        return [
            (
                appointment.customer_id,
                "How was your visit?",
                f"Your {service_name} appointment on {when} is complete, leave a review",
            )
        ]

    if event.event_type in (OWNER_DECISION_RECORDED, EMPLOYEE_DECISION_RECORDED):
        party = "business" if event.event_type == OWNER_DECISION_RECORDED else "staff member"
        return [
            (
                appointment.customer_id,
                "Appointment update",
                f"The {party} approved your {service_name} appointment on {when}",
            )
        ]

    logger.warning(f"No notification mapping for event type {event.event_type}")
    return []


def dispatch_pending_events(session, limit=100, now=None):
    """Deliver up to ``limit`` undispatched events. Returns how many were handled."""
    now = now or datetime.datetime.now()
    stmt = (
        select(AppointmentEvent)
        .where(AppointmentEvent.dispatched_at.is_(None))
        .order_by(AppointmentEvent.id)
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    events = session.scalars(stmt).all()

    try:
        for event in events:
            for user_id, title, message in notifications_for(event):
                session.add(
                    Notification(
                        user_id=user_id,
                        title=title,
                        message=message,
                        type=event.event_type,
                    )
                )
            event.dispatched_at = now
        session.commit()
    except Exception:
        session.rollback()
        raise

    return len(events)
