from flask import Blueprint, current_app, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from slotbook.auth import check_password, hash_password, issue_token, token_required
from slotbook.errors import (
    AuthenticationRequired,
    Conflict,
    EmailNotVerified,
    ResourceNotFound,
    ValidationFailed,
)
from slotbook.extensions import db
from slotbook.models import AuthUser
from slotbook.services.account_tokens import (
    RESET_PASSWORD,
    VERIFY_EMAIL,
    issue_account_token,
    redeem_account_token,
)
from slotbook.utils.parsing import require_fields
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import user_to_dict

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# STAFF accounts are created through the invitation flow only
SELF_SERVICE_ROLES = ("CUSTOMER", "BUSINESS_OWNER")


@auth_bp.route("/register", methods=["POST"])
def register_user():
    """
    Register a customer or business owner account
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [fullName, email, password]
          properties:
            fullName: {type: string}
            email: {type: string}
            phone: {type: string}
            password: {type: string}
            role: {type: string, enum: [CUSTOMER, BUSINESS_OWNER]}
    responses:
      201:
        description: User registered
      400:
        description: Missing or invalid fields
      409:
        description: Email already exists
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ["fullName", "email", "password"])

    email = data["email"].strip().lower()
    password = data["password"]
    role = (data.get("role") or "CUSTOMER").upper()

    if role not in SELF_SERVICE_ROLES:
        raise ValidationFailed(f"Role '{role}' cannot be registered directly")
    if len(password) < 8:
        raise ValidationFailed("Password must be at least 8 characters")

    existing = db.session.scalar(select(AuthUser).where(AuthUser.email == email))
    if existing:
        raise Conflict("Email already exists")

    user = AuthUser(
        email=email,
        password_hash=hash_password(password),
        full_name=data["fullName"].strip(),
        phone=data.get("phone"),
        role=role,
    )
    try:
        db.session.add(user)
        db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"Signup integrity error: {e.orig}")
        raise Conflict("Email already exists")

    issue_account_token(db.session, user, VERIFY_EMAIL)
    db.session.commit()

    current_app.logger.info(f"Registered {role} account {user.id}")
    return api_response(user_to_dict(user), "User registered successfully", 201)


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Exchange email and password for an access token
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful
      401:
        description: Invalid credentials
      403:
        description: Email not verified yet
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ["email", "password"])

    user = db.session.scalar(
        select(AuthUser).where(AuthUser.email == data["email"].strip().lower())
    )
    if not user or not check_password(data["password"], user.password_hash):
        raise AuthenticationRequired("Invalid credentials")
    if current_app.config.get("REQUIRE_EMAIL_VERIFICATION", True) and not user.email_verified:
        raise EmailNotVerified()

    token = issue_token(user)
    return api_response(
        {"accessToken": token, "tokenType": "Bearer", "user": user_to_dict(user)},
        "Login successful",
    )


@auth_bp.route("/me", methods=["GET"])
@token_required()
def get_current_user(auth):
    """Return the account behind the bearer token."""
    user = db.session.get(AuthUser, auth.user_id)
    if not user:
        raise ResourceNotFound("User not found")
    return api_response(user_to_dict(user))


def _param(data, name):
    """Read ``name`` from the query string first, then the JSON body."""
    value = request.args.get(name)
    if value is None:
        value = data.get(name)
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise ValidationFailed(f"Missing required field: {name}")
    return value


def _find_user(email):
    return db.session.scalar(select(AuthUser).where(AuthUser.email == email.lower()))


@auth_bp.route("/verify-email", methods=["GET"])
def verify_email():
    """
    Confirm an email address with the token from the verification email
    ---
    tags:
      - Authentication
    parameters:
      - in: query
        name: token
        type: string
        required: true
    responses:
      200:
        description: Email verified
      404:
        description: Unknown token
      409:
        description: Token expired or already used
    """
    raw_token = _param({}, "token")
    account_token = redeem_account_token(db.session, raw_token, VERIFY_EMAIL)
    user = account_token.user
    user.email_verified = True
    db.session.commit()

    current_app.logger.info(f"Email verified for user {user.id}")
    return api_response(user_to_dict(user), "Email verified successfully")


@auth_bp.route("/resend-verification", methods=["POST"])
def resend_verification():
    """
    Queue a fresh verification email
    ---
    tags:
      - Authentication
    description: Answers 200 whether or not the address has an account.
    parameters:
      - in: query
        name: email
        type: string
        required: true
    responses:
      200:
        description: Request accepted
    """
    data = request.get_json(silent=True) or {}
    user = _find_user(_param(data, "email"))

    if user and not user.email_verified:
        issue_account_token(db.session, user, VERIFY_EMAIL)
        db.session.commit()

    return api_response(
        None, "If the account exists and is not verified yet, a new link has been sent"
    )


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    """
    Queue a password reset email
    ---
    tags:
      - Authentication
    parameters:
      - in: query
        name: email
        type: string
        required: true
    responses:
      200:
        description: Request accepted
    """
    data = request.get_json(silent=True) or {}
    user = _find_user(_param(data, "email"))

    if user:
        issue_account_token(db.session, user, RESET_PASSWORD)
        db.session.commit()

    return api_response(None, "If the account exists, a password reset link has been sent")


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """
    Set a new password with the token from the reset email
    ---
    tags:
      - Authentication
    parameters:
      - in: query
        name: token
        type: string
        required: true
      - in: query
        name: newPassword
        type: string
        required: true
    responses:
      200:
        description: Password changed
      400:
        description: Password too short
      404:
        description: Unknown token
      409:
        description: Token expired or already used
    """
    data = request.get_json(silent=True) or {}
    raw_token = _param(data, "token")
    new_password = _param(data, "newPassword")
    if len(new_password) < 8:
        raise ValidationFailed("Password must be at least 8 characters")

    account_token = redeem_account_token(db.session, raw_token, RESET_PASSWORD)
    user = account_token.user
    user.password_hash = hash_password(new_password)
    # the link reached the inbox, so the address is proven too
    user.email_verified = True
    db.session.commit()

    current_app.logger.info(f"Password reset for user {user.id}")
    return api_response(None, "Password has been reset, you can now log in")
