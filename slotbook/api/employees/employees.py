import datetime
import secrets

from flask import Blueprint, current_app, request
from sqlalchemy import delete, select

from slotbook.auth import token_required
from slotbook.errors import ValidationFailed
from slotbook.extensions import db
from slotbook.models import WEEKDAYS, Employee, EmployeeInvitation, EmployeeSchedule
from slotbook.services.ownership import get_business, get_business_employee, require_owned_business
from slotbook.utils.parsing import parse_time, require_fields
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import employee_to_dict, schedule_to_dict

employees_bp = Blueprint("employees", __name__, url_prefix="/api/businesses")


@employees_bp.route("/<int:business_id>/employees", methods=["GET"])
def list_employees(business_id):
    """
    GET /api/businesses/<business_id>/employees
    Purpose: Active employees of a business.
    """
    business = get_business(business_id)
    employees = db.session.scalars(
        select(Employee)
        .where(Employee.business_id == business.id, Employee.is_active.is_(True))
        .order_by(Employee.name)
    ).all()
    return api_response([employee_to_dict(e) for e in employees])


@employees_bp.route("/<int:business_id>/employees", methods=["POST"])
@token_required("BUSINESS_OWNER")
def create_employee(auth, business_id):
    """
    Add an employee and issue an invitation
    ---
    tags:
      - Employees
    description: The employee gets a STAFF account by accepting the invitation
      token at POST /api/invitations/accept.
    responses:
      201:
        description: Employee created, invitationToken returned
      403:
        description: Not the owner
    """
    business = require_owned_business(auth, business_id)
    data = request.get_json(silent=True) or {}
    require_fields(data, ["name", "email"])

    employee = Employee(
        business_id=business.id,
        name=data["name"].strip(),
        email=data["email"].strip().lower(),
        phone=data.get("phone"),
        specialization=data.get("specialization"),
    )
    db.session.add(employee)
    db.session.flush()

    hours = current_app.config.get("INVITATION_EXPIRES_HOURS", 72)
    invitation = EmployeeInvitation(
        employee_id=employee.id,
        email=employee.email,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.datetime.now() + datetime.timedelta(hours=hours),
    )
    db.session.add(invitation)
    db.session.commit()

    current_app.logger.info(
        f"Employee {employee.id} added to business {business.id}, invitation issued"
    )
    result = employee_to_dict(employee)
    result["invitationToken"] = invitation.token
    result["invitationExpiresAt"] = invitation.expires_at.isoformat()
    return api_response(result, "Employee created", 201)


@employees_bp.route("/<int:business_id>/employees/<int:employee_id>", methods=["PUT"])
@token_required("BUSINESS_OWNER")
def update_employee(auth, business_id, employee_id):
    business = require_owned_business(auth, business_id)
    employee = get_business_employee(business, employee_id)
    data = request.get_json(silent=True) or {}

    if "name" in data:
        if not data["name"]:
            raise ValidationFailed("name cannot be empty")
        employee.name = data["name"].strip()
    for key in ("phone", "specialization"):
        if key in data:
            setattr(employee, key, data[key])

    db.session.commit()
    return api_response(employee_to_dict(employee), "Employee updated")


@employees_bp.route("/<int:business_id>/employees/<int:employee_id>", methods=["DELETE"])
@token_required("BUSINESS_OWNER")
def delete_employee(auth, business_id, employee_id):
    """
    DELETE /api/businesses/<business_id>/employees/<employee_id>
    Purpose: Deactivate an employee. They stop receiving bookings; their
    appointment history is kept.
    """
    business = require_owned_business(auth, business_id)
    employee = get_business_employee(business, employee_id)

    employee.is_active = False
    db.session.commit()
    return api_response(None, "Employee removed")


@employees_bp.route(
    "/<int:business_id>/employees/<int:employee_id>/schedule", methods=["GET"]
)
def get_employee_schedule(business_id, employee_id):
    business = get_business(business_id)
    employee = get_business_employee(business, employee_id)

    rules = db.session.scalars(
        select(EmployeeSchedule).where(EmployeeSchedule.employee_id == employee.id)
    ).all()
    rules = sorted(rules, key=lambda r: WEEKDAYS.index(r.day_of_week))
    return api_response([schedule_to_dict(r) for r in rules])


def _parse_schedule(entries):
    seen = set()
    parsed = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationFailed("Each schedule entry must be an object")

        day = str(entry.get("dayOfWeek", "")).upper()
        if day not in WEEKDAYS:
            raise ValidationFailed(f"Invalid dayOfWeek: {entry.get('dayOfWeek')}")
        if day in seen:
            raise ValidationFailed(f"Duplicate dayOfWeek: {day}")
        seen.add(day)

        is_available = bool(entry.get("isAvailable", True))
        start = end = None
        if entry.get("startTime") or entry.get("endTime"):
            start = parse_time(entry.get("startTime"), "startTime")
            end = parse_time(entry.get("endTime"), "endTime")
        if is_available:
            if start is None or end is None:
                raise ValidationFailed(f"{day}: startTime and endTime are required")
            if end <= start:
                raise ValidationFailed(f"{day}: endTime must be after startTime")

        parsed.append((day, start, end, is_available))
    return parsed


@employees_bp.route(
    "/<int:business_id>/employees/<int:employee_id>/schedule", methods=["POST"]
)
@token_required("BUSINESS_OWNER")
def update_employee_schedule(auth, business_id, employee_id):
    """
    POST /api/businesses/<business_id>/employees/<employee_id>/schedule
    Purpose: Replace the employee's weekly working hours.
    Input: {"schedules": [{dayOfWeek, startTime, endTime, isAvailable}]}
    Days left out are treated as non-working days.
    """
    business = require_owned_business(auth, business_id)
    employee = get_business_employee(business, employee_id)

    data = request.get_json(silent=True) or {}
    entries = data.get("schedules")
    if not isinstance(entries, list):
        raise ValidationFailed("Invalid input. 'schedules' list is required.")
    parsed = _parse_schedule(entries)

    try:
        db.session.execute(
            delete(EmployeeSchedule).where(EmployeeSchedule.employee_id == employee.id)
        )
        rules = []
        for day, start, end, is_available in parsed:
            rule = EmployeeSchedule(
                employee_id=employee.id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                is_available=is_available,
            )
            db.session.add(rule)
            rules.append(rule)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    rules.sort(key=lambda r: WEEKDAYS.index(r.day_of_week))
    return api_response([schedule_to_dict(r) for r in rules], "Schedule updated")
