from slotbook.errors import BusinessNotFound, EmployeeNotFound, ServiceNotFound, Unauthorized
from slotbook.extensions import db
from slotbook.models import Business, Employee, Service


def get_business(business_id):
    business = db.session.get(Business, business_id)
    if not business:
        raise BusinessNotFound()
    return business


def require_owned_business(auth, business_id):
    """The business, provided ``auth`` is its owner."""
    business = get_business(business_id)
    if auth.role != "BUSINESS_OWNER" or business.owner_id != auth.user_id:
        raise Unauthorized("Only the business owner can manage this business")
    return business


def get_business_service(business, service_id):
    service = db.session.get(Service, service_id)
    if not service or service.business_id != business.id or not service.is_active:
        raise ServiceNotFound()
    return service


def get_business_employee(business, employee_id):
    employee = db.session.get(Employee, employee_id)
    if not employee or employee.business_id != business.id:
        raise EmployeeNotFound()
    return employee
