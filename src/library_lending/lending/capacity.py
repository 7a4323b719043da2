"""
Capacity Guard: admission control for new reservation requests.

A request is admitted only when the book can be lent and still has room.
The ledger write and the matching capacity hold are issued in the caller's
transaction, so either both become durable or neither does.
"""

import logging
from datetime import datetime

from ..database.catalog_repository import CatalogRepository
from ..database.reservation_repository import ReservationRepository
from ..errors import ConflictError, InvalidRequestError
from ..models.book import CatalogBook
from ..models.reservation import Reservation

logger = logging.getLogger(__name__)


def hold_capacity(catalog: CatalogRepository, book: CatalogBook) -> CatalogBook:
    """Take one digital slot or one physical copy."""
    if book.is_digital:
        return catalog.adjust_digital_slot(book.id, +1)
    return catalog.adjust_physical_copies(book.id, -1)


def release_capacity(catalog: CatalogRepository, book: CatalogBook) -> CatalogBook:
    """Give back the slot or copy taken by ``hold_capacity``."""
    if book.is_digital:
        return catalog.adjust_digital_slot(book.id, -1)
    return catalog.adjust_physical_copies(book.id, +1)


class CapacityGuard:
    """Admits reservation requests against a book's remaining capacity."""

    def __init__(self, catalog: CatalogRepository, ledger: ReservationRepository):
        self.catalog = catalog
        self.ledger = ledger

    def admit(
        self, user_id: str, book_id: str, now: datetime, notes: str | None = None
    ) -> Reservation:
        """
        Create a ``PENDING`` reservation and hold capacity for it.

        Raises:
            NotFoundError: If the book does not exist
            InvalidRequestError: If the book cannot be lent or has no capacity left
            ConflictError: If the user already has an active reservation for the book
        """
        book = self.catalog.get_book(book_id)
        self.check_admissible(book)

        existing = self.ledger.find_active(user_id, book_id)
        if existing is not None:
            raise ConflictError(
                f"User {user_id} already has an active reservation ({existing.id}) "
                f"for book {book_id}"
            )

        reservation = self.ledger.create(user_id, book_id, reserved_at=now, notes=notes)
        hold_capacity(self.catalog, book)

        logger.debug("Admitted reservation %s for book %s", reservation.id, book_id)
        return reservation

    @staticmethod
    def check_admissible(book: CatalogBook) -> None:
        if book.is_digital:
            if not book.is_digital_lendable:
                raise InvalidRequestError(f"Book {book.id} is not available for digital lending")
            if book.free_digital_slots <= 0:
                raise InvalidRequestError(
                    f"All {book.max_reservations} digital reservation slots for "
                    f"'{book.title}' are taken"
                )
        elif book.available_copies <= 0:
            raise InvalidRequestError(f"No copies of '{book.title}' are available")
