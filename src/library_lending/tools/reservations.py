"""
Reservation tools for the Library Lending MCP server.

1. reserve_book: request a reservation (Capacity Guard)
2. update_reservation_status: staff moves through the lending lifecycle
3. cancel_reservation: withdraw a pending request as its owner or as staff

Every failure is reported with ``isError`` and the error's stable type; a
rejected transition is never reported as success.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..errors import LendingError
from ..lending.service import get_lending_service
from ..models.actor import Actor, Role
from ..models.reservation import ReservationStatus
from ..observability.decorators import trace_tool
from .responses import error_response, lending_error_response, reservation_data, text_content

logger = logging.getLogger(__name__)


# =============================================================================
# RESERVE TOOL
# =============================================================================


class ReserveBookInput(BaseModel):
    """Input schema for the reserve_book tool."""

    user_id: str = Field(
        ...,
        description="Authenticated ID of the member requesting the book",
        min_length=1,
        max_length=50,
        examples=["user_42"],
    )

    book_id: str = Field(
        ...,
        description="ID of the book to reserve",
        min_length=1,
        max_length=50,
        examples=["book_orwell_1984"],
    )

    notes: str | None = Field(
        default=None,
        description="Optional note for library staff",
        max_length=1000,
        examples=["Needed for the book club on Friday"],
    )


@trace_tool("reserve_book")
async def reserve_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the reserve_book tool."""
    try:
        params = ReserveBookInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid reservation parameters: %s", e)
        return error_response(f"Invalid reservation parameters: {e}", "validation_error")

    try:
        reservation = get_lending_service().request_reservation(
            params.user_id, params.book_id, notes=params.notes
        )
    except LendingError as e:
        logger.info("Reservation failed - %s: %s", e.code, e)
        return lending_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in reserve_book tool")
        return error_response(f"An unexpected error occurred: {e!s}", "internal_error")

    return {
        "content": text_content(
            f"Reservation {reservation.id} for book '{reservation.book_id}' is pending "
            "staff approval."
        ),
        "data": {"reservation": reservation_data(reservation)},
    }


# =============================================================================
# STATUS UPDATE TOOL
# =============================================================================


class UpdateReservationStatusInput(BaseModel):
    """Input schema for the update_reservation_status tool."""

    actor_id: str = Field(
        ...,
        description="Authenticated ID of the caller",
        min_length=1,
        max_length=50,
        examples=["staff_7"],
    )

    actor_role: Role = Field(
        default=Role.MEMBER,
        description="Role of the caller as issued by the session layer",
        examples=["LIBRARIAN"],
    )

    reservation_id: str = Field(
        ...,
        description="ID of the reservation to update",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
        examples=["reservation_3f9a1c0b2d4e"],
    )

    status: ReservationStatus = Field(
        ...,
        description="Target status",
        examples=["APPROVED", "CHECKED_OUT", "RETURNED", "CANCELLED"],
    )

    notes: str | None = Field(
        default=None,
        description="Optional staff note stored on the reservation",
        max_length=1000,
    )


_STATUS_MESSAGES = {
    ReservationStatus.APPROVED: "approved; access is open until {due}",
    ReservationStatus.CHECKED_OUT: "checked out",
    ReservationStatus.RETURNED: "returned",
    ReservationStatus.CANCELLED: "cancelled",
}


@trace_tool("update_reservation_status")
async def update_reservation_status_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the update_reservation_status tool.

    Dispatches to the lending state machine; the transition table decides
    whether the move and the caller are allowed.
    """
    try:
        params = UpdateReservationStatusInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid status update parameters: %s", e)
        return error_response(f"Invalid status update parameters: {e}", "validation_error")

    actor = Actor(user_id=params.actor_id, role=params.actor_role)
    try:
        reservation = get_lending_service().update_status(
            actor, params.reservation_id, params.status, notes=params.notes
        )
    except LendingError as e:
        logger.info("Status update failed - %s: %s", e.code, e)
        return lending_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in update_reservation_status tool")
        return error_response(f"An unexpected error occurred: {e!s}", "internal_error")

    due = reservation.due_date.strftime("%B %d, %Y") if reservation.due_date else "-"
    message = f"Reservation {reservation.id} " + _STATUS_MESSAGES[reservation.status].format(
        due=due
    )
    return {
        "content": text_content(message),
        "data": {"reservation": reservation_data(reservation)},
    }


# =============================================================================
# CANCEL TOOL
# =============================================================================


class CancelReservationInput(BaseModel):
    """Input schema for the cancel_reservation tool."""

    actor_id: str = Field(..., min_length=1, max_length=50, description="Authenticated caller ID")
    actor_role: Role = Field(default=Role.MEMBER, description="Role of the caller")
    reservation_id: str = Field(
        ...,
        description="ID of the pending reservation to cancel",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
    )
    notes: str | None = Field(default=None, max_length=1000, description="Reason for cancelling")


@trace_tool("cancel_reservation")
async def cancel_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the cancel_reservation tool."""
    try:
        params = CancelReservationInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid cancel parameters: %s", e)
        return error_response(f"Invalid cancel parameters: {e}", "validation_error")

    actor = Actor(user_id=params.actor_id, role=params.actor_role)
    try:
        reservation = get_lending_service().cancel(actor, params.reservation_id, notes=params.notes)
    except LendingError as e:
        logger.info("Cancel failed - %s: %s", e.code, e)
        return lending_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in cancel_reservation tool")
        return error_response(f"An unexpected error occurred: {e!s}", "internal_error")

    return {
        "content": text_content(
            f"Reservation {reservation.id} cancelled; the hold on '{reservation.book_id}' "
            "was released."
        ),
        "data": {"reservation": reservation_data(reservation)},
    }


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

reserve_book = {
    "name": "reserve_book",
    "description": (
        "Request a reservation for a book. Holds one physical copy or one digital "
        "reservation slot until staff approve or the request is cancelled. Fails if "
        "the book cannot be lent, has no capacity left, or the member already has "
        "an active reservation for it."
    ),
    "inputSchema": ReserveBookInput.model_json_schema(),
    "handler": reserve_book_handler,
}

update_reservation_status = {
    "name": "update_reservation_status",
    "description": (
        "Move a reservation through the lending lifecycle: PENDING -> APPROVED -> "
        "CHECKED_OUT -> RETURNED, or PENDING -> CANCELLED. Approval sets the due date "
        "and unlocks digital books; return releases capacity and re-locks them."
    ),
    "inputSchema": UpdateReservationStatusInput.model_json_schema(),
    "handler": update_reservation_status_handler,
}

cancel_reservation = {
    "name": "cancel_reservation",
    "description": (
        "Cancel a pending reservation as its owner or as staff, releasing the "
        "held copy or digital slot."
    ),
    "inputSchema": CancelReservationInput.model_json_schema(),
    "handler": cancel_reservation_handler,
}
