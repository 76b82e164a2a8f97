# Booking: availability, appointment creation and the approval workflow
from flask import Blueprint, request

from slotbook.auth import token_required
from slotbook.services.availability import AvailabilityEngine
from slotbook.services.lifecycle import (
    AppointmentLifecycle,
    get_visible_appointment,
    scoped_appointments,
)
from slotbook.utils.parsing import (
    parse_date,
    parse_datetime,
    parse_duration,
    parse_int,
    require_fields,
)
from slotbook.utils.responses import api_response, page_args, paginate
from slotbook.utils.serializers import appointment_to_dict

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")
availability_bp = Blueprint("availability", __name__, url_prefix="/api/availability")


def _slots_response(duration_param):
    employee_id = parse_int(request.args.get("employeeId"), "employeeId")
    day = parse_date(request.args.get("date"))
    duration = parse_duration(request.args.get(duration_param))

    slots = AvailabilityEngine().available_slots(employee_id, day, duration)
    return api_response([slot.strftime("%H:%M") for slot in slots])


@appointments_bp.route("/available-slots", methods=["GET"])
def available_slots():
    """
    Bookable start times for an employee on a day
    ---
    tags:
      - Appointments
    parameters:
      - {name: employeeId, in: query, type: integer, required: true}
      - {name: date, in: query, type: string, format: date, required: true}
      - {name: duration, in: query, type: integer, required: true, description: minutes}
    responses:
      200:
        description: List of "HH:MM" start times in ascending order
        schema:
          type: array
          items: {type: string, example: "09:30"}
      400:
        description: Invalid duration or date
      404:
        description: Employee not found
    """
    return _slots_response("duration")


@availability_bp.route("", methods=["GET"])
def availability():
    """
    GET /api/availability?employeeId=&date=&durationMinutes=
    Purpose: Same as /api/appointments/available-slots, kept for the
    booking wizard which calls it by this name.
    """
    return _slots_response("durationMinutes")


@appointments_bp.route("", methods=["GET"])
@token_required()
def list_appointments(auth):
    """
    Appointments visible to the caller
    ---
    tags:
      - Appointments
    description: Customers see their bookings, owners their business's
      appointments and staff the appointments assigned to them.
    parameters:
      - {name: status, in: query, type: string, description: "comma separated, e.g. PENDING,CONFIRMED"}
      - {name: page, in: query, type: integer, default: 0}
      - {name: size, in: query, type: integer, default: 20}
    responses:
      200:
        description: Page of appointments, newest first
    """
    page, size = page_args()
    stmt = scoped_appointments(auth, request.args.get("status"))
    items, meta = paginate(stmt, page, size, appointment_to_dict)
    return api_response(items, pagination=meta)


@appointments_bp.route("/<int:appointment_id>", methods=["GET"])
@token_required()
def get_appointment(auth, appointment_id):
    appointment = get_visible_appointment(auth, appointment_id)
    return api_response(appointment_to_dict(appointment))


@appointments_bp.route("", methods=["POST"])
@token_required("CUSTOMER")
def create_appointment(auth):
    """
    Book an appointment
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [businessId, serviceId, employeeId, appointmentDate]
          properties:
            businessId: {type: integer}
            serviceId: {type: integer}
            employeeId: {type: integer}
            appointmentDate: {type: string, format: date-time, example: "2026-11-20T10:30:00"}
            notes: {type: string}
    responses:
      201:
        description: Appointment created in PENDING status
      404:
        description: Business, service or employee not found
      409:
        description: Slot no longer available
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ["businessId", "serviceId", "employeeId", "appointmentDate"])

    appointment = AppointmentLifecycle().create(
        auth,
        business_id=parse_int(data["businessId"], "businessId"),
        service_id=parse_int(data["serviceId"], "serviceId"),
        employee_id=parse_int(data["employeeId"], "employeeId"),
        appointment_date=parse_datetime(data["appointmentDate"]),
        notes=data.get("notes"),
    )
    return api_response(appointment_to_dict(appointment), "Appointment booked", 201)


@appointments_bp.route("/<int:appointment_id>", methods=["PUT"])
@token_required("CUSTOMER")
def update_appointment(auth, appointment_id):
    """
    PUT /api/appointments/<appointment_id>
    Purpose: Reschedule (new appointmentDate and/or employeeId) or edit notes.
    A reschedule sends the appointment back to PENDING for fresh approvals.
    """
    data = request.get_json(silent=True) or {}

    appointment_date = None
    if data.get("appointmentDate"):
        appointment_date = parse_datetime(data["appointmentDate"])
    employee_id = None
    if data.get("employeeId") is not None:
        employee_id = parse_int(data["employeeId"], "employeeId")

    appointment = AppointmentLifecycle().reschedule(
        auth,
        appointment_id,
        appointment_date=appointment_date,
        employee_id=employee_id,
        notes=data.get("notes"),
    )
    return api_response(appointment_to_dict(appointment), "Appointment updated")


@appointments_bp.route("/<int:appointment_id>/cancel", methods=["PUT"])
@token_required("CUSTOMER")
def cancel_appointment(auth, appointment_id):
    """
    Cancel an upcoming appointment
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointment cancelled
      403:
        description: Not the customer who booked
      409:
        description: Appointment already finished, cancelled or in the past
    """
    appointment = AppointmentLifecycle().cancel(auth, appointment_id)
    return api_response(appointment_to_dict(appointment), "Appointment cancelled")


@appointments_bp.route("/<int:appointment_id>/approve/owner", methods=["PUT"])
@token_required("BUSINESS_OWNER")
def approve_as_owner(auth, appointment_id):
    """
    Owner approval
    ---
    tags:
      - Appointments
    description: Records the business decision. The appointment becomes
      CONFIRMED once the approval rule (APPROVAL_POLICY) is satisfied.
    responses:
      200:
        description: Decision recorded
      403:
        description: Not the owner of the appointment's business
      409:
        description: A different decision was recorded or the appointment is closed
    """
    appointment = AppointmentLifecycle().approve_as_owner(auth, appointment_id)
    return api_response(appointment_to_dict(appointment), "Owner approval recorded")


@appointments_bp.route("/<int:appointment_id>/reject/owner", methods=["PUT"])
@token_required("BUSINESS_OWNER")
def reject_as_owner(auth, appointment_id):
    appointment = AppointmentLifecycle().reject_as_owner(auth, appointment_id)
    return api_response(appointment_to_dict(appointment), "Appointment rejected by owner")


@appointments_bp.route("/<int:appointment_id>/approve/employee", methods=["PUT"])
@token_required("STAFF")
def approve_as_employee(auth, appointment_id):
    appointment = AppointmentLifecycle().approve_as_employee(auth, appointment_id)
    return api_response(appointment_to_dict(appointment), "Employee approval recorded")


@appointments_bp.route("/<int:appointment_id>/reject/employee", methods=["PUT"])
@token_required("STAFF")
def reject_as_employee(auth, appointment_id):
    appointment = AppointmentLifecycle().reject_as_employee(auth, appointment_id)
    return api_response(appointment_to_dict(appointment), "Appointment rejected by employee")
