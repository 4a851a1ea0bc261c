"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        """Initialize exception with message, status code and error code."""
        self.message = message
        self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


# Scheduling errors


class SlotAlreadyBookedException(ConflictException):
    """The requested slot is held by another appointment."""

    code = "SLOT_ALREADY_BOOKED"

    def __init__(self, message: str = "This slot was just booked. Please choose another time."):
        super().__init__(message)


class InvalidSlotException(BadRequestException):
    """Slot date or time cannot be interpreted."""

    code = "INVALID_SLOT"

    def __init__(self, message: str = "Invalid slot information"):
        super().__init__(message)


class AppointmentNotFoundException(NotFoundException):
    """Appointment does not exist."""

    code = "APPOINTMENT_NOT_FOUND"

    def __init__(self, message: str = "Appointment not found"):
        super().__init__(message)


class NotAppointmentOwnerException(ForbiddenException):
    """Requester does not own the appointment being mutated."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "You cannot modify this appointment"):
        super().__init__(message)


class InvalidStatusTransitionException(ConflictException):
    """Appointment status does not allow the requested operation."""

    code = "INVALID_STATUS_TRANSITION"


class OrderingViolationException(ConflictException):
    """An earlier appointment for the same doctor and day is still open."""

    code = "ORDERING_VIOLATION"

    def __init__(self, message: str = "Complete earlier appointments first"):
        super().__init__(message)


class DiagnosisRequiredException(BadRequestException):
    """Completion submitted without any diagnosis."""

    code = "DIAGNOSIS_REQUIRED"

    def __init__(self, message: str = "At least one diagnosis is required"):
        super().__init__(message)


class RequestNotFoundException(NotFoundException):
    """Schedule change request does not exist."""

    code = "REQUEST_NOT_FOUND"

    def __init__(self, message: str = "Request not found"):
        super().__init__(message)


class RequestNotPendingException(BadRequestException):
    """Schedule change request was already finalized."""

    code = "REQUEST_NOT_PENDING"

    def __init__(self, message: str = "Request is not pending"):
        super().__init__(message)
