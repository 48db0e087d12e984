"""Booking error taxonomy.

Every rejected admission or mutation raises a BookingError subclass. The kind
is stable and machine-readable; the message is meant for the member. Only
InfrastructureError is safe to retry.
"""

import enum


class ErrorKind(enum.StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_COMPOSITION = "invalid_composition"
    RESOURCE_INACTIVE = "resource_inactive"
    INVALID_WINDOW = "invalid_window"
    INSUFFICIENT_TICKETS = "insufficient_tickets"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONFLICT = "conflict"
    DEADLINE_PASSED = "deadline_passed"
    INFRASTRUCTURE = "infrastructure_error"


class BookingError(Exception):
    """Base class. Subclasses fix the kind, HTTP status and default message."""

    kind: ErrorKind
    status_code: int = 400
    retryable: bool = False
    default_message: str = "The request could not be completed."

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"rule": self.kind.value, "message": self.message, **self.extra}


class Unauthenticated(BookingError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401
    default_message = "Not authenticated."


class Forbidden(BookingError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "You are not allowed to perform this action."


class NotFound(BookingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found."


class InvalidComposition(BookingError):
    kind = ErrorKind.INVALID_COMPOSITION
    status_code = 422
    default_message = (
        "A reservation needs 4 players: either 4 distinct participants, or 1 to 3 tickets "
        "plus the matching number of participants, organizer included."
    )


class ResourceInactive(BookingError):
    kind = ErrorKind.RESOURCE_INACTIVE
    status_code = 423
    default_message = "This court is under maintenance and cannot be booked."


class InvalidWindow(BookingError):
    kind = ErrorKind.INVALID_WINDOW
    status_code = 422
    default_message = "Reservations can only be made for a time in the future."


class InsufficientTickets(BookingError):
    kind = ErrorKind.INSUFFICIENT_TICKETS
    status_code = 402
    default_message = "Not enough tickets. Use fewer tickets or add participants."


class QuotaExceeded(BookingError):
    kind = ErrorKind.QUOTA_EXCEEDED
    status_code = 403
    default_message = "Maximum number of simultaneous reservations reached."

    def __init__(self, message: str | None = None, *, active_count: int, co_occupants: list[dict], **extra):
        self.active_count = active_count
        self.co_occupants = co_occupants
        super().__init__(message, active_count=active_count, co_occupants=co_occupants, **extra)


class Conflict(BookingError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    default_message = "This court is already booked or blocked at this time. Pick another time or court."


class DeadlinePassed(BookingError):
    kind = ErrorKind.DEADLINE_PASSED
    status_code = 403
    default_message = (
        "This reservation can no longer be modified: changes must be made at least "
        "30 minutes before it starts. The tickets used are lost."
    )


class InfrastructureError(BookingError):
    kind = ErrorKind.INFRASTRUCTURE
    status_code = 503
    retryable = True
    default_message = "The booking service is temporarily unavailable. Please try again."
