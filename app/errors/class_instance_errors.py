# app/errors/class_instance_errors.py

from app.errors.booking_errors import BookingError


class ClassInstanceError(BookingError):
    """Base exception for administrative class instance operations."""
    code = "CLASS_INSTANCE_ERROR"


class InvalidCapacity(ClassInstanceError):
    """Raised when the requested capacity is not a positive integer."""
    code = "INVALID_CAPACITY"
    status_code = 400


class CapacityBelowEnrolled(ClassInstanceError):
    """Raised when shrinking capacity below the number of booked seats."""
    code = "CAPACITY_BELOW_ENROLLED"
    status_code = 409


class ClassInPast(ClassInstanceError):
    """Raised when editing a class instance that has already ended."""
    code = "CLASS_IN_PAST"
    status_code = 400


class InvalidTimeRange(ClassInstanceError):
    """Raised when the end of a time window is not after its start."""
    code = "INVALID_TIME_RANGE"
    status_code = 400


class RescheduleInPast(ClassInstanceError):
    """Raised when rescheduling to a start time that has already passed."""
    code = "RESCHEDULE_IN_PAST"
    status_code = 400


class InvalidDateRange(ClassInstanceError):
    """Raised when a schedule generation range is inverted or too large."""
    code = "INVALID_DATE_RANGE"
    status_code = 400
