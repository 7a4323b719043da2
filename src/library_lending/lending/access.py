"""
Access Gate for digital content.

``check_access`` is the single decision point for reading or downloading a
digital file. It re-derives eligibility from the current ledger and catalog
state on every call and writes nothing.
"""

import logging
from datetime import datetime

from ..database.catalog_repository import CatalogRepository
from ..database.reservation_repository import ReservationRepository
from ..errors import ForbiddenError, InvalidRequestError, NotFoundError
from ..models.access import AccessGrant
from ..models.reservation import ACCESS_STATUSES
from ..observability.metrics import record_access_check

logger = logging.getLogger(__name__)


def resolve_file_reference(digital_file: str, base_url: str | None = None) -> str:
    """Join a stored file reference onto the storage base URL, if one is set."""
    if not base_url or "://" in digital_file:
        return digital_file
    return f"{base_url}/{digital_file.lstrip('/')}"


class AccessGate:
    """Decides whether a user may open the digital file behind a reservation."""

    def __init__(
        self,
        catalog: CatalogRepository,
        ledger: ReservationRepository,
        file_base_url: str | None = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.file_base_url = file_base_url

    def check_access(self, user_id: str, reservation_id: str, now: datetime) -> AccessGrant:
        """
        Check access for ``user_id`` through ``reservation_id`` at instant ``now``.

        Raises:
            NotFoundError: If the reservation is absent or the book has no file attached
            ForbiddenError: If the reservation belongs to someone else, is not
                approved or checked out, has expired, or the book is locked
            InvalidRequestError: If the book has no digital edition
        """
        try:
            grant = self._check(user_id, reservation_id, now)
        except (ForbiddenError, NotFoundError, InvalidRequestError) as e:
            record_access_check(e.code)
            logger.info("Access denied for user %s on %s: %s", user_id, reservation_id, e)
            raise

        record_access_check("granted")
        return grant

    def _check(self, user_id: str, reservation_id: str, now: datetime) -> AccessGrant:
        reservation = self.ledger.get(reservation_id)
        if reservation.user_id != user_id:
            raise ForbiddenError(f"Reservation {reservation_id} belongs to another user")

        if reservation.status not in ACCESS_STATUSES:
            raise ForbiddenError(
                f"Reservation {reservation_id} is {reservation.status.value}; "
                "access requires an approved or checked out reservation"
            )

        if reservation.is_expired(now):
            raise ForbiddenError(
                f"Access through reservation {reservation_id} expired on "
                f"{reservation.due_date.isoformat()}"
            )

        book = self.catalog.get_book(reservation.book_id)
        if not book.has_digital_content:
            raise InvalidRequestError(f"Book {book.id} has no digital edition")
        if not book.digital_file:
            raise NotFoundError(f"No digital file is attached to book {book.id}")
        if book.is_locked:
            raise ForbiddenError(f"The digital file for '{book.title}' is locked")

        return AccessGrant(
            reservation_id=reservation.id,
            user_id=user_id,
            book_id=book.id,
            book_title=book.title,
            book_author=book.author,
            status=reservation.status,
            file_reference=resolve_file_reference(book.digital_file, self.file_base_url),
            approved_at=reservation.approved_at,
            due_date=reservation.due_date,
            checked_at=now,
        )
