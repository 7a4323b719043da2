"""Reservation Resources - read-only views of the reservation ledger.

Resources:
- library://users/{user_id}/reservations - a member's reservations, newest first
- library://reservations/pending - the staff approval queue, oldest first
- library://reservations/overdue - approved or checked out past their due date
- library://books/{book_id}/availability - copies, digital slots and lock state
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..errors import NotFoundError
from ..lending.service import get_lending_service
from ..models.reservation import ReservationStatus
from ..observability.decorators import trace_resource

logger = logging.getLogger(__name__)


@trace_resource("user_reservations")
async def get_user_reservations_handler(user_id: str) -> dict[str, Any]:
    """A member's reservations, newest first."""
    try:
        page = get_lending_service().list_user_reservations(user_id)
        return page.model_dump(mode="json")
    except Exception as e:
        logger.exception("Error in users/{id}/reservations resource")
        raise ResourceError(f"Failed to retrieve reservations for {user_id}: {e!s}") from e


@trace_resource("pending_reservations")
async def list_pending_reservations_handler() -> dict[str, Any]:
    """Reservations waiting for staff approval."""
    try:
        page = get_lending_service().list_reservations_by_status(ReservationStatus.PENDING)
        return page.model_dump(mode="json")
    except Exception as e:
        logger.exception("Error in reservations/pending resource")
        raise ResourceError(f"Failed to retrieve pending reservations: {e!s}") from e


@trace_resource("overdue_reservations")
async def list_overdue_reservations_handler() -> dict[str, Any]:
    """Reservations whose access window has lapsed. Statuses are left unchanged."""
    try:
        page = get_lending_service().list_overdue()
        return page.model_dump(mode="json")
    except Exception as e:
        logger.exception("Error in reservations/overdue resource")
        raise ResourceError(f"Failed to retrieve overdue reservations: {e!s}") from e


@trace_resource("book_availability")
async def get_book_availability_handler(book_id: str) -> dict[str, Any]:
    try:
        availability = get_lending_service().get_availability(book_id)
        return availability.model_dump(mode="json")
    except NotFoundError as e:
        raise ResourceError(f"Book not found: {book_id}") from e
    except Exception as e:
        logger.exception("Error in books/{id}/availability resource")
        raise ResourceError(f"Failed to retrieve availability for {book_id}: {e!s}") from e


reservation_resources: list[dict[str, Any]] = [
    {
        "uri_template": "library://users/{user_id}/reservations",
        "name": "Member Reservations",
        "description": "All reservations of one member, newest first, with their status and due dates.",
        "mime_type": "application/json",
        "handler": get_user_reservations_handler,
    },
    {
        "uri": "library://reservations/pending",
        "name": "Pending Reservations",
        "description": "Reservation requests waiting for staff approval, oldest first.",
        "mime_type": "application/json",
        "handler": list_pending_reservations_handler,
    },
    {
        "uri": "library://reservations/overdue",
        "name": "Overdue Reservations",
        "description": (
            "Approved or checked out reservations whose due date has passed. Digital "
            "access through them is already denied."
        ),
        "mime_type": "application/json",
        "handler": list_overdue_reservations_handler,
    },
    {
        "uri_template": "library://books/{book_id}/availability",
        "name": "Book Availability",
        "description": "Available copies, digital reservation slots and lock state of a book.",
        "mime_type": "application/json",
        "handler": get_book_availability_handler,
    },
]
