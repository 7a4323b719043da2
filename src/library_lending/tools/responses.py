"""Response shaping shared by the lending tools."""

from typing import Any

from ..errors import LendingError
from ..models.reservation import Reservation


def text_content(text: str) -> list[dict[str, str]]:
    return [{"type": "text", "text": text}]


def error_response(message: str, error_type: str) -> dict[str, Any]:
    """MCP tool error result carrying a stable error type."""
    return {
        "isError": True,
        "errorType": error_type,
        "content": text_content(message),
    }


def lending_error_response(error: LendingError) -> dict[str, Any]:
    return error_response(str(error), error.code)


def reservation_data(reservation: Reservation) -> dict[str, Any]:
    """Structured reservation payload for tool clients."""
    return reservation.model_dump(mode="json")
