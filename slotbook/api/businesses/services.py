# Services offered by a business
from flask import Blueprint, current_app, request
from sqlalchemy import select

from slotbook.auth import token_required
from slotbook.errors import ValidationFailed
from slotbook.extensions import db
from slotbook.models import Service
from slotbook.services.ownership import get_business, get_business_service, require_owned_business
from slotbook.utils.parsing import parse_duration, parse_price, require_fields
from slotbook.utils.responses import api_response
from slotbook.utils.serializers import service_to_dict

services_bp = Blueprint("services", __name__, url_prefix="/api/businesses")


@services_bp.route("/<int:business_id>/services", methods=["GET"])
def list_services(business_id):
    """
    GET /api/businesses/<business_id>/services
    Purpose: Active services of a business, used by the booking wizard.
    """
    business = get_business(business_id)
    services = db.session.scalars(
        select(Service)
        .where(Service.business_id == business.id, Service.is_active.is_(True))
        .order_by(Service.name)
    ).all()
    return api_response([service_to_dict(s) for s in services])


@services_bp.route("/<int:business_id>/services", methods=["POST"])
@token_required("BUSINESS_OWNER")
def create_service(auth, business_id):
    """
    Add a service to the owner's business
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, duration, price]
          properties:
            name: {type: string}
            description: {type: string}
            duration: {type: integer, description: minutes}
            price: {type: number}
    responses:
      201:
        description: Service created
      400:
        description: Invalid duration or price
      403:
        description: Not the owner
    """
    business = require_owned_business(auth, business_id)
    data = request.get_json(silent=True) or {}
    require_fields(data, ["name", "duration", "price"])

    service = Service(
        business_id=business.id,
        name=data["name"].strip(),
        description=data.get("description"),
        duration=parse_duration(data["duration"]),
        price=parse_price(data["price"]),
    )
    db.session.add(service)
    db.session.commit()

    current_app.logger.info(f"Service {service.id} added to business {business.id}")
    return api_response(service_to_dict(service), "Service created", 201)


@services_bp.route("/<int:business_id>/services/<int:service_id>", methods=["PUT"])
@token_required("BUSINESS_OWNER")
def update_service(auth, business_id, service_id):
    """
    PUT /api/businesses/<business_id>/services/<service_id>
    Purpose: Change name, description, duration or price. Existing
    appointments keep the duration and price they were booked with.
    """
    business = require_owned_business(auth, business_id)
    service = get_business_service(business, service_id)
    data = request.get_json(silent=True) or {}

    if "name" in data:
        if not data["name"]:
            raise ValidationFailed("name cannot be empty")
        service.name = data["name"].strip()
    if "description" in data:
        service.description = data["description"]
    if "duration" in data:
        service.duration = parse_duration(data["duration"])
    if "price" in data:
        service.price = parse_price(data["price"])

    db.session.commit()
    return api_response(service_to_dict(service), "Service updated")


@services_bp.route("/<int:business_id>/services/<int:service_id>", methods=["DELETE"])
@token_required("BUSINESS_OWNER")
def delete_service(auth, business_id, service_id):
    """Retire a service. Past appointments still reference it."""
    business = require_owned_business(auth, business_id)
    service = get_business_service(business, service_id)

    service.is_active = False
    db.session.commit()
    return api_response(None, "Service deleted")
