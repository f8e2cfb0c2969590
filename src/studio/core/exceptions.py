"""Business rule violations raised by the service layer."""

from typing import Any, List, Optional


class StudioRuleViolation(Exception):
    """Raised when business constraints are violated."""

    status_code = 400

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class InvalidRequest(StudioRuleViolation):
    """Payload is well formed but breaks a domain rule."""

    status_code = 422


class NotFound(StudioRuleViolation):
    status_code = 404


class InsufficientCredits(StudioRuleViolation):
    """Booking blocked because the student has no reposition credit left.

    ``completed`` holds whatever the operation already persisted before running
    out of credits (weekly bookings keep the earlier weeks).
    """

    status_code = 409

    def __init__(self, detail: str, completed: Optional[List[Any]] = None) -> None:
        super().__init__(detail)
        self.completed = completed or []


class ClassFullAndNoDisplaceable(StudioRuleViolation):
    status_code = 409


class DisplacementConfirmationRequired(StudioRuleViolation):
    """Class is full but the joining student may take a partner-network seat."""

    status_code = 409

    def __init__(self, detail: str, attendee_id, student_id) -> None:
        super().__init__(detail)
        self.attendee_id = attendee_id
        self.student_id = student_id


class StoreError(StudioRuleViolation):
    """Database failure; the driver message is surfaced verbatim."""

    status_code = 503


class NotAuthenticated(StudioRuleViolation):
    status_code = 401


class OrganizationAccessDenied(StudioRuleViolation):
    status_code = 403
