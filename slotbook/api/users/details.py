# Profile of the signed-in user
from flask import Blueprint, request

from slotbook.auth import check_password, hash_password, token_required
from slotbook.errors import ResourceNotFound, ValidationFailed
from slotbook.extensions import db
from slotbook.models import AuthUser
from slotbook.utils.parsing import require_fields
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import user_to_dict

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _load_user(auth):
    user = db.session.get(AuthUser, auth.user_id)
    if not user:
        raise ResourceNotFound("User not found")
    return user


@users_bp.route("/me", methods=["GET"])
@token_required()
def get_profile(auth):
    return api_response(user_to_dict(_load_user(auth)))


@users_bp.route("/me", methods=["PUT"])
@token_required()
def update_profile(auth):
    """
    PUT /api/users/me
    Purpose: Update fullName and/or phone of the signed-in user.
    """
    user = _load_user(auth)
    data = request.get_json(silent=True) or {}

    if "fullName" in data:
        full_name = (data.get("fullName") or "").strip()
        if not full_name:
            raise ValidationFailed("fullName cannot be empty")
        user.full_name = full_name

    if "phone" in data:
        user.phone = data.get("phone")

    db.session.commit()
    return api_response(user_to_dict(user), "Profile updated")


@users_bp.route("/me/password", methods=["PUT"])
@token_required()
def change_password(auth):
    user = _load_user(auth)
    data = request.get_json(silent=True) or {}
    require_fields(data, ["currentPassword", "newPassword"])

    if not check_password(data["currentPassword"], user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    if len(data["newPassword"]) < 8:
        raise ValidationFailed("Password must be at least 8 characters")

    user.password_hash = hash_password(data["newPassword"])
    db.session.commit()
    return api_response(None, "Password updated")
