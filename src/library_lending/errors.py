"""
Error taxonomy for the lending lifecycle.

All errors below are terminal business outcomes: callers see them verbatim and
nothing in the lending core retries them. The only condition retried
internally is a serialization conflict reported by the store, which surfaces
as ``ConflictError`` once the retry budget is spent.

Each class carries a stable ``code`` that the tool layer reports as the error
type, so every kind maps to a distinct caller-facing message.
"""


class LendingError(Exception):
    """Base exception for lending operations."""

    code = "lending_error"


class NotFoundError(LendingError):
    """Raised when a book or reservation does not exist."""

    code = "not_found"


class InvalidRequestError(LendingError):
    """Raised when a reservation request is malformed or capacity is exhausted."""

    code = "invalid_request"


class ConflictError(LendingError):
    """Raised for a duplicate active reservation or an unresolved write conflict."""

    code = "conflict"


class InvalidTransitionError(LendingError):
    """Raised when a status change is not allowed from the current status."""

    code = "invalid_transition"

    def __init__(self, message: str, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class CapacityError(LendingError):
    """Raised when a capacity adjustment would break a book's counter bounds."""

    code = "capacity_exceeded"


class ForbiddenError(LendingError):
    """Raised when an actor may not perform an action or access content."""

    code = "forbidden"


__all__ = [
    "CapacityError",
    "ConflictError",
    "ForbiddenError",
    "InvalidRequestError",
    "InvalidTransitionError",
    "LendingError",
    "NotFoundError",
]
