"""
Library Lending MCP Tools.

Tools are the write path of the server: every reservation status change a
client can make goes through one of these handlers.
"""

from .access import access_ebook
from .reservations import cancel_reservation, reserve_book, update_reservation_status

all_tools = [
    reserve_book,
    update_reservation_status,
    cancel_reservation,
    access_ebook,
]

__all__ = [
    "access_ebook",
    "all_tools",
    "cancel_reservation",
    "reserve_book",
    "update_reservation_status",
]
