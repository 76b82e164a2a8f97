# Customer favorites (saved businesses)
from flask import Blueprint, current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from slotbook.auth import token_required
from slotbook.extensions import db
from slotbook.models import Favorite
from slotbook.services.ownership import get_business
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import business_to_dict

favorites_bp = Blueprint("favorites", __name__, url_prefix="/api/favorites")


def _find(customer_id, business_id):
    return db.session.scalar(
        select(Favorite).where(
            Favorite.customer_id == customer_id, Favorite.business_id == business_id
        )
    )


@favorites_bp.route("", methods=["GET"])
@token_required("CUSTOMER")
def list_favorites(auth):
    favorites = db.session.scalars(
        select(Favorite)
        .where(Favorite.customer_id == auth.user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
    ).all()
    return api_response([business_to_dict(f.business) for f in favorites])


@favorites_bp.route("/<int:business_id>", methods=["POST"])
@token_required("CUSTOMER")
def add_favorite(auth, business_id):
    """
    Save a business to favorites
    ---
    tags:
      - Favorites
    description: Adding a business that is already a favorite is a no-op.
    responses:
      200:
        description: Business is a favorite
      404:
        description: Business not found
    """
    business = get_business(business_id)
    if _find(auth.user_id, business.id) is None:
        try:
            db.session.add(Favorite(customer_id=auth.user_id, business_id=business.id))
            db.session.commit()
        except IntegrityError as e:
            # a parallel request saved it first
            db.session.rollback()
            current_app.logger.info(f"Favorite already present: {e.orig}")
    return api_response({"businessId": business.id, "favorite": True}, "Added to favorites")


@favorites_bp.route("/<int:business_id>", methods=["DELETE"])
@token_required("CUSTOMER")
def remove_favorite(auth, business_id):
    favorite = _find(auth.user_id, business_id)
    if favorite is not None:
        db.session.delete(favorite)
        db.session.commit()
    return api_response({"businessId": business_id, "favorite": False}, "Removed from favorites")


@favorites_bp.route("/<int:business_id>/check", methods=["GET"])
@token_required("CUSTOMER")
def check_favorite(auth, business_id):
    favorite = _find(auth.user_id, business_id)
    return api_response({"businessId": business_id, "favorite": favorite is not None})
