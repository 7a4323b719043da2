"""
Catalog repository for the Library Lending service.

This is the catalog store of the lending lifecycle and the only write path
for a book's capacity fields:

1. **adjust_digital_slot**: move ``current_reservations`` within
   ``[0, max_reservations]``
2. **adjust_physical_copies**: move ``available_copies`` within
   ``[0, total_copies]``
3. **set_locked**: set the digital lock (idempotent in value, always versioned)

Adjustments are applied to the caller's session and become durable when the
caller commits. The book's version counter makes each adjustment conditional
on the capacity the caller read, so a concurrent writer forces a retry rather
than a lost update.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.orm.attributes import flag_modified

from ..errors import CapacityError, NotFoundError
from ..models.book import BookAvailability, CatalogBook
from ..observability.context import trace_repository_operation
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Book as BookDB

logger = logging.getLogger(__name__)


class BookCreateSchema(BaseModel):
    """Schema for registering a book with the lending catalog."""

    id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=500)
    author: str | None = None
    isbn: str | None = None
    total_copies: int = Field(default=1, ge=0)
    available_copies: int | None = Field(default=None, ge=0)
    is_digital: bool = False
    is_electronic: bool = False
    digital_file: str | None = None
    is_locked: bool = True
    max_reservations: int = Field(default=1, ge=0)


class CatalogRepository(BaseRepository[BookDB, CatalogBook]):
    """
    Repository for the capacity fields of catalog books.
    """

    @property
    def model_class(self) -> type[BookDB]:
        return BookDB

    def add_book(self, data: BookCreateSchema) -> CatalogBook:
        """
        Register a book. Available copies default to the total.

        Raises:
            CapacityError: If the initial counts are out of bounds
        """
        available = data.total_copies if data.available_copies is None else data.available_copies
        if available > data.total_copies:
            raise CapacityError(
                f"Book {data.id}: available copies ({available}) exceed total ({data.total_copies})"
            )

        with trace_repository_operation("catalog", "add_book", "books"):
            book = BookDB(
                id=data.id,
                title=data.title,
                author=data.author,
                isbn=data.isbn,
                total_copies=data.total_copies,
                available_copies=available,
                is_digital=data.is_digital,
                is_electronic=data.is_electronic,
                digital_file=data.digital_file,
                is_locked=data.is_locked,
                max_reservations=data.max_reservations,
                current_reservations=0,
            )
            self.session.add(book)
            self.session.flush()

        logger.info("Registered book %s (digital=%s)", book.id, book.is_digital)
        return self._to_response_model(book)

    def get_book(self, book_id: str) -> CatalogBook:
        """
        Get a book snapshot.

        Raises:
            NotFoundError: If the book does not exist
        """
        return self._to_response_model(self._load(book_id))

    def get_availability(self, book_id: str) -> BookAvailability:
        """Capacity summary for a book."""
        return BookAvailability.from_book(self.get_book(book_id))

    def list_books(
        self, digital_only: bool = False, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[CatalogBook]:
        """List books ordered by title."""
        pagination = pagination or PaginationParams()
        pagination.validate_params()

        query = select(BookDB)
        if digital_only:
            query = query.where(BookDB.is_digital.is_(True))

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar() or 0
        rows = (
            self.session.execute(
                query.order_by(BookDB.title).offset(pagination.offset).limit(pagination.page_size)
            )
            .scalars()
            .all()
        )
        return PaginatedResponse.build(
            [self._to_response_model(row) for row in rows], total, pagination
        )

    def adjust_digital_slot(self, book_id: str, delta: int) -> CatalogBook:
        """
        Apply ``current_reservations += delta``.

        Raises:
            NotFoundError: If the book does not exist
            CapacityError: If the result would leave ``[0, max_reservations]``
        """
        with trace_repository_operation("catalog", "adjust_digital_slot", "books") as span:
            book = self._load(book_id, for_update=True)
            new_value = book.current_reservations + delta
            span.set_attribute("capacity.delta", delta)

            if new_value < 0 or new_value > book.max_reservations:
                raise CapacityError(
                    f"Digital reservations for book {book_id} would become {new_value} "
                    f"(allowed 0..{book.max_reservations})"
                )

            book.current_reservations = new_value
            book.updated_at = datetime.now()

        logger.debug(
            "Book %s digital slots %d/%d (delta %+d)",
            book_id,
            new_value,
            book.max_reservations,
            delta,
        )
        return self._to_response_model(book)

    def adjust_physical_copies(self, book_id: str, delta: int) -> CatalogBook:
        """
        Apply ``available_copies += delta``.

        Raises:
            NotFoundError: If the book does not exist
            CapacityError: If the result would leave ``[0, total_copies]``
        """
        with trace_repository_operation("catalog", "adjust_physical_copies", "books") as span:
            book = self._load(book_id, for_update=True)
            new_value = book.available_copies + delta
            span.set_attribute("capacity.delta", delta)

            if new_value < 0 or new_value > book.total_copies:
                raise CapacityError(
                    f"Available copies for book {book_id} would become {new_value} "
                    f"(allowed 0..{book.total_copies})"
                )

            book.available_copies = new_value
            book.updated_at = datetime.now()

        logger.debug(
            "Book %s copies %d/%d (delta %+d)",
            book_id,
            new_value,
            book.total_copies,
            delta,
        )
        return self._to_response_model(book)

    def set_locked(self, book_id: str, locked: bool) -> CatalogBook:
        """
        Lock or unlock the digital file.

        The row is written even when the lock already has the requested value,
        so the version counter moves and a concurrent transaction that decided
        on the old lock state fails at flush instead of overwriting it.

        Raises:
            NotFoundError: If the book does not exist
        """
        book = self._load(book_id, for_update=True)
        if book.is_locked != locked:
            book.is_locked = locked
            book.updated_at = datetime.now()
            logger.debug("Book %s %s", book_id, "locked" if locked else "unlocked")
        else:
            flag_modified(book, "is_locked")
        return self._to_response_model(book)

    def _load(self, book_id: str, for_update: bool = False) -> BookDB:
        book = self._get_row(book_id, for_update=for_update)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def _to_response_model(self, db_obj: BookDB) -> CatalogBook:
        return CatalogBook(
            id=db_obj.id,
            title=db_obj.title,
            author=db_obj.author,
            isbn=db_obj.isbn,
            total_copies=db_obj.total_copies,
            available_copies=db_obj.available_copies,
            is_digital=db_obj.is_digital,
            is_electronic=db_obj.is_electronic,
            digital_file=db_obj.digital_file,
            is_locked=db_obj.is_locked,
            max_reservations=db_obj.max_reservations,
            current_reservations=db_obj.current_reservations,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )
