"""
Library Lending Models.

Pydantic snapshots returned by the lending core:
- CatalogBook / BookAvailability: the lending slice of a catalog entry
- Reservation: a reservation ledger entry
- Actor: the authenticated caller
- AccessGrant: a capability to read one digital file
"""

from .access import AccessGrant
from .actor import Actor, Role
from .book import BookAvailability, CatalogBook
from .reservation import (
    ACCESS_STATUSES,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Reservation,
    ReservationStatus,
)

__all__ = [
    "ACCESS_STATUSES",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "AccessGrant",
    "Actor",
    "BookAvailability",
    "CatalogBook",
    "Reservation",
    "ReservationStatus",
    "Role",
]
