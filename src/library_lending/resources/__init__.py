"""Library Lending MCP Resources.

Resources are read-only; every change to a reservation goes through the tools.
"""

from .reservations import reservation_resources

all_resources = reservation_resources

__all__ = [
    "all_resources",
    "reservation_resources",
]
