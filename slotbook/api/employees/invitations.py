import datetime

from flask import Blueprint, current_app, request
from sqlalchemy import select

from slotbook.auth import check_password, hash_password, issue_token
from slotbook.errors import Conflict, ResourceNotFound, ValidationFailed
from slotbook.extensions import db
from slotbook.models import AuthUser, Employee, EmployeeInvitation
from slotbook.utils.parsing import require_fields
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import employee_to_dict, user_to_dict

invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


@invitations_bp.route("/accept", methods=["POST"])
def accept_invitation():
    """
    Accept an employee invitation
    ---
    tags:
      - Employees
    description: Creates (or links an existing) STAFF account and attaches it
      to the invited employee record.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [token, password]
          properties:
            token: {type: string}
            password: {type: string}
            fullName: {type: string}
    responses:
      200:
        description: Invitation accepted, access token returned
      404:
        description: Unknown token
      409:
        description: Token expired or already used
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ["token", "password"])

    invitation = db.session.scalar(
        select(EmployeeInvitation).where(EmployeeInvitation.token == data["token"])
    )
    if not invitation:
        raise ResourceNotFound("Invitation not found")
    if invitation.accepted_at is not None:
        raise Conflict("Invitation has already been accepted")
    if invitation.expires_at < datetime.datetime.now():
        raise Conflict("Invitation has expired")

    employee = db.session.get(Employee, invitation.employee_id)
    if not employee or not employee.is_active:
        raise ResourceNotFound("Employee no longer exists")

    user = db.session.scalar(select(AuthUser).where(AuthUser.email == invitation.email))
    if user:
        if user.role != "STAFF":
            raise Conflict("This email belongs to a non-staff account")
        if not check_password(data["password"], user.password_hash):
            raise ValidationFailed("Password does not match the existing account")
        linked = db.session.scalar(select(Employee.id).where(Employee.user_id == user.id))
        if linked:
            raise Conflict("This account is already linked to an employee")
    else:
        if len(data["password"]) < 8:
            raise ValidationFailed("Password must be at least 8 characters")
        user = AuthUser(
            email=invitation.email,
            password_hash=hash_password(data["password"]),
            full_name=(data.get("fullName") or employee.name).strip(),
            phone=employee.phone,
            role="STAFF",
            email_verified=True,
        )
        db.session.add(user)
        db.session.flush()

    employee.user_id = user.id
    invitation.accepted_at = datetime.datetime.now()
    db.session.commit()

    current_app.logger.info(f"Invitation accepted: employee {employee.id} -> user {user.id}")
    return api_response(
        {
            "accessToken": issue_token(user),
            "tokenType": "Bearer",
            "user": user_to_dict(user),
            "employee": employee_to_dict(employee),
        },
        "Invitation accepted",
    )
