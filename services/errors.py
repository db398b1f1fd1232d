"""Domain errors raised by the booking core.

Each error carries the HTTP status the API layer answers with; the app
registers one handler for ``BookingError`` that renders ``{"error": message}``.
"""


class BookingError(Exception):
    status_code = 400
    default_message = "Booking request failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(BookingError):
    status_code = 404
    default_message = "Not found"


class SlotUnavailable(BookingError):
    status_code = 409
    default_message = "This slot is no longer available"


class ServiceVendorMismatch(BookingError):
    status_code = 400
    default_message = "Service does not match the selected time slot"


class VendorMismatch(BookingError):
    status_code = 400
    default_message = "New slot must be from the same vendor"


class Forbidden(BookingError):
    status_code = 403
    default_message = "Forbidden"


class InvalidTransition(BookingError):
    status_code = 409
    default_message = "Invalid booking status transition"


class HasActiveBookings(BookingError):
    status_code = 409
    default_message = "Cannot delete a slot with active bookings"


class TransactionAborted(BookingError):
    status_code = 409
    default_message = "The operation could not be completed and was rolled back"
