"""
Client-facing error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API answers
with. None of them is fatal to the process; callers recover by resubmitting
with corrected input (for example a fresh slot from the availability query).
"""


class BookingError(Exception):
    code = "BOOKING_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        body = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(BookingError):
    code = "VALIDATION_FAILED"
    default_message = "Invalid request data"


class InvalidDuration(BookingError):
    code = "INVALID_DURATION"
    default_message = "Duration must be a positive number of minutes"


class AuthenticationRequired(BookingError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401
    default_message = "Missing or invalid access token"


class Unauthorized(BookingError):
    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "You are not allowed to perform this action"


class ResourceNotFound(BookingError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class BusinessNotFound(ResourceNotFound):
    code = "BUSINESS_NOT_FOUND"
    default_message = "Business not found"


class ServiceNotFound(ResourceNotFound):
    code = "SERVICE_NOT_FOUND"
    default_message = "Service not found"


class EmployeeNotFound(ResourceNotFound):
    code = "EMPLOYEE_NOT_FOUND"
    default_message = "Employee not found"


class AppointmentNotFound(ResourceNotFound):
    code = "APPOINTMENT_NOT_FOUND"
    default_message = "Appointment not found"


class Conflict(BookingError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Request conflicts with the current state"


class SlotUnavailable(Conflict):
    code = "SLOT_UNAVAILABLE"
    default_message = "The selected time slot is no longer available"


class CancellationNotAllowed(Conflict):
    code = "CANCELLATION_NOT_ALLOWED"
    default_message = "This appointment can no longer be cancelled"


class AlreadyDecided(Conflict):
    code = "ALREADY_DECIDED"
    default_message = "A different decision was already recorded"


class InvalidStateTransition(Conflict):
    code = "INVALID_STATE_TRANSITION"
    default_message = "The appointment is not in a state that allows this action"


class AlreadyReviewed(Conflict):
    code = "ALREADY_REVIEWED"
    default_message = "This appointment has already been reviewed"


class BusinessAlreadyExists(Conflict):
    code = "BUSINESS_ALREADY_EXISTS"
    default_message = "This owner already has a business"


class ConcurrentUpdate(Conflict):
    code = "CONCURRENT_UPDATE"
    default_message = "The appointment was modified concurrently, reload and retry"


class EmailNotVerified(Unauthorized):
    code = "EMAIL_NOT_VERIFIED"
    default_message = "Email not verified, check your inbox for the verification link"
