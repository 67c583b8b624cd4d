# app/errors/capacity_errors.py

class CapacityError(Exception):
    """Base exception for membership capacity and enrollment errors."""
    code = "CAPACITY_ERROR"
    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.code)


class LocationNotFound(CapacityError):
    """Raised when a location is not found."""
    code = "LOCATION_NOT_FOUND"
    status_code = 404


class PlanNotFound(CapacityError):
    """Raised when a membership plan is not found."""
    code = "PLAN_NOT_FOUND"
    status_code = 404


class InvalidCapacityLimit(CapacityError):
    """Raised when a configured limit is negative or inconsistent."""
    code = "INVALID_CAPACITY_LIMIT"
    status_code = 400


class CapacityBlocked(CapacityError):
    """Raised when the location does not accept new members."""
    code = "CAPACITY_BLOCKED"
    status_code = 409


class PlanCapacityBlocked(CapacityError):
    """Raised when the plan is full for the selected location."""
    code = "PLAN_CAPACITY_BLOCKED"
    status_code = 409


class AlreadySubscribed(CapacityError):
    """Raised when the member already has a live subscription for the plan at the location."""
    code = "ALREADY_SUBSCRIBED"
    status_code = 409


class SubscriptionNotFound(CapacityError):
    """Raised when a member subscription is not found."""
    code = "SUBSCRIPTION_NOT_FOUND"
    status_code = 404
