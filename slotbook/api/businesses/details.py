# Business profile: search, details, create, update
from flask import Blueprint, current_app, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from slotbook.auth import token_required
from slotbook.errors import BusinessAlreadyExists, BusinessNotFound, ValidationFailed
from slotbook.extensions import db
from slotbook.models import Business
from slotbook.services.ownership import get_business, require_owned_business
from slotbook.utils.parsing import require_fields
from slotbook.utils.responses import api_response, page_args, paginate
from slotbook.utils.serializers import business_to_dict

businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")

REQUIRED_FIELDS = ["name", "category", "businessType", "address", "city"]

# request key -> column
EDITABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "category": "category",
    "businessType": "business_type",
    "address": "address",
    "city": "city",
    "phone": "phone",
    "email": "email",
    "imageUrl": "image_url",
}


@businesses_bp.route("", methods=["GET"])
def list_businesses():
    """
    Search businesses
    ---
    tags:
      - Businesses
    parameters:
      - {name: name, in: query, type: string}
      - {name: city, in: query, type: string}
      - {name: category, in: query, type: string}
      - {name: businessType, in: query, type: string}
      - {name: page, in: query, type: integer, default: 0}
      - {name: size, in: query, type: integer, default: 20}
    responses:
      200:
        description: Page of businesses
    """
    page, size = page_args()
    stmt = select(Business)

    name = request.args.get("name", "").strip()
    city = request.args.get("city", "").strip()
    category = request.args.get("category", "").strip()
    business_type = request.args.get("businessType", "").strip()

    if name:
        stmt = stmt.where(Business.name.ilike(f"%{name}%"))
    if city:
        stmt = stmt.where(Business.city.ilike(city))
    if category:
        stmt = stmt.where(Business.category.ilike(category))
    if business_type:
        stmt = stmt.where(Business.business_type.ilike(business_type))

    items, meta = paginate(stmt.order_by(Business.name), page, size, business_to_dict)
    return api_response(items, pagination=meta)


@businesses_bp.route("/me", methods=["GET"])
@token_required("BUSINESS_OWNER")
def get_my_business(auth):
    """
    GET /api/businesses/me
    Purpose: The signed-in owner's business. 404 means the owner has none yet.
    """
    business = db.session.scalar(select(Business).where(Business.owner_id == auth.user_id))
    if not business:
        raise BusinessNotFound("You have not created a business yet")
    return api_response(business_to_dict(business))


@businesses_bp.route("/<int:business_id>", methods=["GET"])
def get_business_details(business_id):
    return api_response(business_to_dict(get_business(business_id)))


@businesses_bp.route("", methods=["POST"])
@token_required("BUSINESS_OWNER")
def create_business(auth):
    """
    Create the owner's business
    ---
    tags:
      - Businesses
    responses:
      201:
        description: Business created
      409:
        description: Owner already has a business
    """
    data = request.get_json(silent=True) or {}
    require_fields(data, REQUIRED_FIELDS)

    existing = db.session.scalar(select(Business.id).where(Business.owner_id == auth.user_id))
    if existing:
        raise BusinessAlreadyExists()

    business = Business(owner_id=auth.user_id)
    for key, column in EDITABLE_FIELDS.items():
        if key in data:
            setattr(business, column, data[key])

    try:
        db.session.add(business)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"Business create integrity error: {e.orig}")
        raise BusinessAlreadyExists()

    current_app.logger.info(f"Business {business.id} created by owner {auth.user_id}")
    return api_response(business_to_dict(business), "Business created", 201)


@businesses_bp.route("/<int:business_id>", methods=["PUT"])
@token_required("BUSINESS_OWNER")
def update_business(auth, business_id):
    business = require_owned_business(auth, business_id)
    data = request.get_json(silent=True) or {}

    for key, column in EDITABLE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if key in REQUIRED_FIELDS and not value:
            raise ValidationFailed(f"{key} cannot be empty")
        setattr(business, column, value)

    db.session.commit()
    return api_response(business_to_dict(business), "Business updated")
