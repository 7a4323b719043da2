"""
Digital access tool for the Library Lending MCP server.

access_ebook asks the Access Gate for a file reference each time a reader
opens a digital book. Nothing is cached between calls.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..errors import LendingError
from ..lending.service import get_lending_service
from ..observability.decorators import trace_tool
from .responses import error_response, lending_error_response, text_content

logger = logging.getLogger(__name__)


class AccessEbookInput(BaseModel):
    """Input schema for the access_ebook tool."""

    user_id: str = Field(
        ...,
        description="Authenticated ID of the reader",
        min_length=1,
        max_length=50,
        examples=["user_42"],
    )

    reservation_id: str = Field(
        ...,
        description="Reservation that grants access to the book",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
        examples=["reservation_3f9a1c0b2d4e"],
    )


@trace_tool("access_ebook")
async def access_ebook_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the access_ebook tool."""
    try:
        params = AccessEbookInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid access parameters: %s", e)
        return error_response(f"Invalid access parameters: {e}", "validation_error")

    try:
        grant = get_lending_service().check_access(params.user_id, params.reservation_id)
    except LendingError as e:
        return lending_error_response(e)
    except Exception as e:
        logger.exception("Unexpected error in access_ebook tool")
        return error_response(f"An unexpected error occurred: {e!s}", "internal_error")

    message = f"Access granted to '{grant.book_title}'"
    if grant.due_date:
        message += f" until {grant.due_date.strftime('%B %d, %Y %H:%M')}"

    return {
        "content": text_content(message),
        "data": {"access": grant.model_dump(mode="json")},
    }


access_ebook = {
    "name": "access_ebook",
    "description": (
        "Open the digital file of a reserved book. Access requires an approved or "
        "checked out reservation owned by the reader, within its due date, on an "
        "unlocked book. Returns a file reference valid for this request only."
    ),
    "inputSchema": AccessEbookInput.model_json_schema(),
    "handler": access_ebook_handler,
}
