import datetime
import math

from flask import current_app, jsonify, request

from slotbook.errors import BookingError, ValidationFailed
from slotbook.extensions import db


def api_response(data=None, message="OK", status=200, pagination=None, error=None):
    """Wrap a payload in the envelope every endpoint answers with."""
    body = {
        "success": status < 400,
        "message": message,
        "data": data,
        "timestamp": datetime.datetime.now().isoformat(timespec="seconds"),
    }
    if error is not None:
        body["error"] = error
    if pagination is not None:
        body["pagination"] = pagination
    return jsonify(body), status


def error_response(error: BookingError):
    body = {
        "success": False,
        "message": error.message,
        "data": None,
        "timestamp": datetime.datetime.now().isoformat(timespec="seconds"),
    }
    body.update(error.to_dict())
    return jsonify(body), error.status_code


def page_args():
    """
    Read zero-based ``page`` and ``size`` query parameters.

    Sizes are clamped to MAX_PAGE_SIZE; negative or non-numeric values are
    rejected.
    """
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = int(request.args.get("page", 0))
        size = int(request.args.get("size", default_size))
    except (TypeError, ValueError):
        raise ValidationFailed("page and size must be integers")

    if page < 0 or size < 1:
        raise ValidationFailed("page must be >= 0 and size must be >= 1")
    return page, min(size, max_size)


def paginate(stmt, page, size, serializer):
    """Run a select with Flask-SQLAlchemy pagination, return (items, meta)."""
    result = db.paginate(stmt, page=page + 1, per_page=size, error_out=False)
    items = [serializer(row) for row in result.items]
    meta = {
        "page": page,
        "size": size,
        "totalElements": result.total,
        "totalPages": math.ceil(result.total / size) if result.total else 0,
    }
    return items, meta
