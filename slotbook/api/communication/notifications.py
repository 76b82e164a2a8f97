from flask import Blueprint
from sqlalchemy import func, select, update

from slotbook.auth import token_required
from slotbook.errors import ResourceNotFound
from slotbook.extensions import db
from slotbook.models import Notification
from slotbook.utils.responses import api_response, page_args, paginate
from slotbook.utils.serializers import notification_to_dict

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.route("", methods=["GET"])
@token_required()
def list_notifications(auth):
    """
    In-app notifications of the signed-in user
    ---
    tags:
      - Notifications
    parameters:
      - {name: page, in: query, type: integer, default: 0}
      - {name: size, in: query, type: integer, default: 20}
    responses:
      200:
        description: Page of notifications, newest first
    """
    page, size = page_args()
    stmt = (
        select(Notification)
        .where(Notification.user_id == auth.user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    items, meta = paginate(stmt, page, size, notification_to_dict)
    return api_response(items, pagination=meta)


@notifications_bp.route("/unread-count", methods=["GET"])
@token_required()
def unread_count(auth):
    count = db.session.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == auth.user_id, Notification.read.is_(False)
        )
    )
    return api_response({"count": count or 0})


@notifications_bp.route("/<int:notification_id>/read", methods=["PUT"])
@token_required()
def mark_read(auth, notification_id):
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.user_id != auth.user_id:
        raise ResourceNotFound("Notification not found")

    notification.read = True
    db.session.commit()
    return api_response(notification_to_dict(notification), "Notification marked as read")


@notifications_bp.route("/read-all", methods=["PUT"])
@token_required()
def mark_all_read(auth):
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == auth.user_id, Notification.read.is_(False))
        .values(read=True)
    )
    db.session.commit()
    return api_response({"updated": result.rowcount}, "All notifications marked as read")
