# app/errors/booking_errors.py

class BookingError(Exception):
    """Base exception for booking-related errors."""
    code = "BOOKING_ERROR"
    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.code)


class MemberNotFound(BookingError):
    """Raised when the member does not exist."""
    code = "MEMBER_NOT_FOUND"
    status_code = 404


class ClassInstanceNotFound(BookingError):
    """Raised when a class instance is not found."""
    code = "CLASS_INSTANCE_NOT_FOUND"
    status_code = 404


class BookingNotFound(BookingError):
    """Raised when a booking is not found (or belongs to another member)."""
    code = "BOOKING_NOT_FOUND"
    status_code = 404


class NoAccess(BookingError):
    """Raised when the member has no usable access to the class location."""
    code = "NO_ACCESS"
    status_code = 403


class ClassFull(BookingError):
    """Raised when every seat of the class instance is taken."""
    code = "CLASS_FULL"
    status_code = 409


class AlreadyBooked(BookingError):
    """Raised when the member already holds an active booking for the instance."""
    code = "ALREADY_BOOKED"
    status_code = 409


class ClassNotBookable(BookingError):
    """Raised when the class instance is not in the scheduled state."""
    code = "CLASS_NOT_BOOKABLE"
    status_code = 400


class ClassAlreadyStarted(BookingError):
    """Raised when the class instance start time has passed."""
    code = "CLASS_ALREADY_STARTED"
    status_code = 400


class BookingNotActive(BookingError):
    """Raised when an operation requires a booking in the booked state."""
    code = "BOOKING_NOT_ACTIVE"
    status_code = 400


class ClassCanceled(BookingError):
    """Raised when attendance is marked on an administratively canceled class."""
    code = "CLASS_CANCELED"
    status_code = 400


class TooEarly(BookingError):
    """Raised when attendance is marked before the check-in window opens."""
    code = "TOO_EARLY"
    status_code = 400


class AttendanceWindowClosed(BookingError):
    """Raised when attendance is marked after the check-in window closed."""
    code = "ATTENDANCE_WINDOW_CLOSED"
    status_code = 400
