# noqa: E402
"""
Swagger/OpenAPI configuration for the Slotbook booking API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Slotbook Booking API",
        "description": "REST API for booking appointments with businesses: availability, dual owner/employee approval, reviews, favorites and in-app notifications",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Registration, login and profile"},
        {"name": "Businesses", "description": "Business search and management"},
        {"name": "Services", "description": "Services offered by a business"},
        {"name": "Employees", "description": "Employees, invitations and schedules"},
        {"name": "Appointments", "description": "Availability, booking and approvals"},
        {"name": "Reviews", "description": "Reviews of completed appointments"},
        {"name": "Favorites", "description": "Saved businesses"},
        {"name": "Notifications", "description": "In-app notifications"},
        {"name": "Utility", "description": "Health check"},
    ],
    "definitions": {
        "Envelope": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean"},
                "message": {"type": "string"},
                "data": {"type": "object"},
                "timestamp": {"type": "string", "format": "date-time"},
            },
        },
        "Error": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "example": False},
                "message": {"type": "string"},
                "data": {"type": "object", "example": None},
                "timestamp": {"type": "string", "format": "date-time"},
                "error": {"type": "string", "example": "SLOT_UNAVAILABLE"},
                "details": {"type": "object"},
            },
        },
        "Pagination": {
            "type": "object",
            "properties": {
                "page": {"type": "integer", "example": 0},
                "size": {"type": "integer", "example": 20},
                "totalElements": {"type": "integer"},
                "totalPages": {"type": "integer"},
            },
        },
        "Business": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "category": {"type": "string"},
                "businessType": {"type": "string"},
                "address": {"type": "string"},
                "city": {"type": "string"},
                "phone": {"type": "string"},
                "email": {"type": "string"},
                "imageUrl": {"type": "string"},
                "ownerId": {"type": "integer"},
            },
        },
        "Service": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "businessId": {"type": "integer"},
                "name": {"type": "string"},
                "duration": {"type": "integer"},
                "price": {"type": "number", "format": "float"},
            },
        },
        "Employee": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "businessId": {"type": "integer"},
                "userId": {"type": "integer"},
                "name": {"type": "string"},
                "email": {"type": "string"},
                "specialization": {"type": "string"},
                "isActive": {"type": "boolean"},
            },
        },
        "Appointment": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "customerId": {"type": "integer"},
                "businessId": {"type": "integer"},
                "serviceId": {"type": "integer"},
                "employeeId": {"type": "integer"},
                "appointmentDate": {"type": "string", "format": "date-time"},
                "endAt": {"type": "string", "format": "date-time"},
                "status": {
                    "type": "string",
                    "enum": ["PENDING", "CONFIRMED", "COMPLETED", "CANCELLED"],
                },
                "ownerApproved": {"type": "boolean", "description": "Absent until the owner decides"},
                "employeeApproved": {
                    "type": "boolean",
                    "description": "Absent until the employee decides",
                },
                "notes": {"type": "string"},
            },
        },
        "Review": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "appointmentId": {"type": "integer"},
                "rating": {"type": "integer", "minimum": 1, "maximum": 5},
                "comment": {"type": "string"},
                "customerName": {"type": "string"},
                "createdAt": {"type": "string", "format": "date-time"},
            },
        },
        "User": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "email": {"type": "string", "format": "email"},
                "fullName": {"type": "string"},
                "phone": {"type": "string"},
                "role": {
                    "type": "string",
                    "enum": ["CUSTOMER", "BUSINESS_OWNER", "STAFF"],
                },
            },
        },
    },
}
