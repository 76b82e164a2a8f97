"""camelCase JSON shapes for API records."""


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


def user_to_dict(user):
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name,
        "phone": user.phone,
        "role": user.role,
        "emailVerified": bool(user.email_verified),
    }


def business_to_dict(business):
    return {
        "id": business.id,
        "name": business.name,
        "description": business.description,
        "category": business.category,
        "businessType": business.business_type,
        "address": business.address,
        "city": business.city,
        "phone": business.phone,
        "email": business.email,
        "imageUrl": business.image_url,
        "ownerId": business.owner_id,
        "createdAt": _iso(business.created_at),
        "updatedAt": _iso(business.updated_at),
    }


def service_to_dict(service):
    return {
        "id": service.id,
        "businessId": service.business_id,
        "name": service.name,
        "description": service.description,
        "duration": service.duration,
        "price": _money(service.price),
        "createdAt": _iso(service.created_at),
        "updatedAt": _iso(service.updated_at),
    }


def employee_to_dict(employee):
    return {
        "id": employee.id,
        "businessId": employee.business_id,
        "userId": employee.user_id,
        "name": employee.name,
        "email": employee.email,
        "phone": employee.phone,
        "specialization": employee.specialization,
        "isActive": bool(employee.is_active),
        "createdAt": _iso(employee.created_at),
        "updatedAt": _iso(employee.updated_at),
    }


def schedule_to_dict(rule):
    return {
        "id": rule.id,
        "employeeId": rule.employee_id,
        "dayOfWeek": rule.day_of_week,
        "startTime": rule.start_time.strftime("%H:%M") if rule.start_time else None,
        "endTime": rule.end_time.strftime("%H:%M") if rule.end_time else None,
        "isAvailable": bool(rule.is_available),
    }


def appointment_to_dict(apt, include_related=True):
    data = {
        "id": apt.id,
        "customerId": apt.customer_id,
        "businessId": apt.business_id,
        "serviceId": apt.service_id,
        "employeeId": apt.employee_id,
        "appointmentDate": _iso(apt.appointment_date),
        "endAt": _iso(apt.end_at),
        "status": apt.status,
        "priceAtBook": _money(apt.price_at_book),
        "notes": apt.notes,
        "createdAt": _iso(apt.created_at),
        "updatedAt": _iso(apt.updated_at),
    }
    # undecided approvals are left out of the record
    if apt.owner_approved is not None:
        data["ownerApproved"] = apt.owner_approved
    if apt.employee_approved is not None:
        data["employeeApproved"] = apt.employee_approved
    if include_related:
        data["service"] = (
            {"id": apt.service.id, "name": apt.service.name, "duration": apt.service.duration}
            if apt.service
            else None
        )
        data["employee"] = (
            {"id": apt.employee.id, "name": apt.employee.name} if apt.employee else None
        )
        data["business"] = (
            {"id": apt.business.id, "name": apt.business.name, "address": apt.business.address}
            if apt.business
            else None
        )
        data["customer"] = (
            {"id": apt.customer.id, "fullName": apt.customer.full_name}
            if apt.customer
            else None
        )
    return data


def review_to_dict(review):
    appointment = review.appointment
    employee = appointment.employee if appointment else None
    return {
        "id": review.id,
        "appointmentId": review.appointment_id,
        "customerId": review.customer_id,
        "customerName": review.customer.full_name if review.customer else None,
        "businessId": review.business_id,
        "employeeId": review.employee_id,
        "employeeName": employee.name if employee else None,
        "rating": review.rating,
        "comment": review.comment,
        "createdAt": _iso(review.created_at),
    }


def notification_to_dict(notification):
    return {
        "id": notification.id,
        "userId": notification.user_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "read": bool(notification.read),
        "createdAt": _iso(notification.created_at),
    }
