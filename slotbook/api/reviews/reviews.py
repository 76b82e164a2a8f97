from flask import Blueprint, current_app, request
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from slotbook.auth import token_required
from slotbook.errors import (
    AlreadyReviewed,
    AppointmentNotFound,
    InvalidStateTransition,
    ResourceNotFound,
    Unauthorized,
    ValidationFailed,
)
from slotbook.extensions import db
from slotbook.models import Appointment, Review
from slotbook.services.ownership import get_business
from slotbook.utils.parsing import parse_int, require_fields
from slotbook.utils.responses import api_response, page_args, paginate
from slotbook.utils.serializers import review_to_dict

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")
business_reviews_bp = Blueprint("business_reviews", __name__, url_prefix="/api/businesses")


def _parse_rating(value):
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationFailed("Rating must be an integer between 1 and 5")
    return value


def _own_review(auth, review_id):
    review = db.session.get(Review, review_id)
    if not review:
        raise ResourceNotFound("Review not found")
    if review.customer_id != auth.user_id:
        raise Unauthorized("You can only change your own reviews")
    return review


# -------------------------------------------------------------------------
# POST /api/reviews
# Purpose: Review a completed appointment. One review per appointment.
# -------------------------------------------------------------------------
@reviews_bp.route("", methods=["POST"])
@token_required("CUSTOMER")
def create_review(auth):
    """
    Review a completed appointment
    ---
    tags:
      - Reviews
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [appointmentId, rating]
          properties:
            appointmentId: {type: integer}
            rating: {type: integer, minimum: 1, maximum: 5}
            comment: {type: string}
    responses:
      201:
        description: Review created
      409:
        description: Appointment not completed or already reviewed
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, ["appointmentId", "rating"])
    appointment_id = parse_int(data["appointmentId"], "appointmentId")
    rating = _parse_rating(data["rating"])

    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise AppointmentNotFound()
    if appointment.customer_id != auth.user_id:
        raise Unauthorized("You can only review your own appointments")
    if appointment.status != "COMPLETED":
        raise InvalidStateTransition("Only completed appointments can be reviewed")

    existing = db.session.scalar(
        select(Review.id).where(Review.appointment_id == appointment.id)
    )
    if existing:
        raise AlreadyReviewed()

    review = Review(
        appointment_id=appointment.id,
        customer_id=auth.user_id,
        business_id=appointment.business_id,
        employee_id=appointment.employee_id,
        rating=rating,
        comment=data.get("comment"),
    )
    try:
        db.session.add(review)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"Review post integrity error: {e.orig}")
        raise AlreadyReviewed()

    current_app.logger.info(
        f"Review {review.id} posted for appointment {appointment.id}"
    )
    return api_response(review_to_dict(review), "Review posted successfully", 201)


@reviews_bp.route("/<int:review_id>", methods=["PUT"])
@token_required("CUSTOMER")
def update_review(auth, review_id):
    review = _own_review(auth, review_id)
    data = request.get_json(silent=True) or {}

    if "rating" in data:
        review.rating = _parse_rating(data["rating"])
    if "comment" in data:
        review.comment = data["comment"]

    db.session.commit()
    return api_response(review_to_dict(review), "Review updated")


@reviews_bp.route("/<int:review_id>", methods=["DELETE"])
@token_required("CUSTOMER")
def delete_review(auth, review_id):
    review = _own_review(auth, review_id)
    db.session.delete(review)
    db.session.commit()
    return api_response(None, "Review deleted")


@reviews_bp.route("/me", methods=["GET"])
@token_required("CUSTOMER")
def my_reviews(auth):
    page, size = page_args()
    stmt = (
        select(Review)
        .where(Review.customer_id == auth.user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    items, meta = paginate(stmt, page, size, review_to_dict)
    return api_response(items, pagination=meta)


@business_reviews_bp.route("/<int:business_id>/reviews", methods=["GET"])
def business_reviews(business_id):
    """
    Reviews of a business
    ---
    tags:
      - Reviews
    parameters:
      - {name: page, in: query, type: integer, default: 0}
      - {name: size, in: query, type: integer, default: 20}
    responses:
      200:
        description: Page of reviews, newest first. pagination.averageRating holds the business average.
    """
    business = get_business(business_id)
    page, size = page_args()

    average = db.session.scalar(
        select(func.avg(Review.rating)).where(Review.business_id == business.id)
    )
    stmt = (
        select(Review)
        .where(Review.business_id == business.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    items, meta = paginate(stmt, page, size, review_to_dict)
    meta["averageRating"] = round(float(average), 2) if average is not None else None
    return api_response(items, pagination=meta)
