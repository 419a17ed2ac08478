"""
Booking error taxonomy.

Every expected business failure of the booking core is raised as one of
these; the HTTP layer maps each kind to a status code.
"""

from typing import Any, Dict, List, Optional


class BookingError(Exception):
    """Base class: carries a human-readable reason and the component that raised it."""

    kind = "booking_error"

    def __init__(self, message: str, component: str = "Booking"):
        super().__init__(message)
        self.message = message
        self.component = component

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}

    def __str__(self) -> str:
        return f"[{self.component}] {self.message}"


class ValidationError(BookingError):
    """Malformed input (bad duration, unknown interview type, ...)."""

    kind = "validation_error"


class ConflictError(BookingError):
    """Overlapping slot or a lost race for a shared record."""

    kind = "conflict"


class AlreadyBookedError(ConflictError):
    kind = "already_booked"


class SlotNoLongerAvailableError(ConflictError):
    kind = "slot_no_longer_available"


class NotFoundError(BookingError):
    kind = "not_found"


class UnauthorizedError(BookingError):
    kind = "unauthorized"


class InvalidStateError(BookingError):
    """Operation not valid for the record's current lifecycle state."""

    kind = "invalid_state"


class DuplicateError(BookingError):
    """A second active payment for one interview."""

    kind = "duplicate"


class PendingPaymentExistsError(BookingError):
    """The candidate still has interviews whose payment is unresolved."""

    kind = "pending_payment_exists"

    def __init__(
        self,
        message: str,
        component: str = "Booking",
        blocking_interviews: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, component)
        self.blocking_interviews = blocking_interviews or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["pending_interviews"] = self.blocking_interviews
        return data


class StorageError(BookingError):
    """The database could not be reached or rejected the write."""

    kind = "storage_error"
