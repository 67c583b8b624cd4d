# app/errors/waitlist_errors.py

from app.errors.booking_errors import BookingError


class WaitlistError(BookingError):
    """Base exception for waitlist-related errors."""
    code = "WAITLIST_ERROR"


class ClassNotFull(WaitlistError):
    """Raised when joining the waitlist of a class that still has free seats."""
    code = "CLASS_NOT_FULL"
    status_code = 400


class AlreadyWaitlisted(WaitlistError):
    """Raised when the member already has a waiting entry for the instance."""
    code = "ALREADY_WAITLISTED"
    status_code = 409


class WaitlistEntryNotFound(WaitlistError):
    """Raised when a waitlist entry is not found."""
    code = "WAITLIST_ENTRY_NOT_FOUND"
    status_code = 404


class WaitlistEntryNotActive(WaitlistError):
    """Raised when the entry is no longer waiting."""
    code = "WAITLIST_ENTRY_NOT_ACTIVE"
    status_code = 400
