"""
Reservation ledger for the Library Lending service.

The ledger is the authoritative record of reservation requests and their
status history. It provides:

1. **Creation** of ``PENDING`` entries (called by the capacity guard)
2. **Status writes** (called only by the lending state machine)
3. **Lookups** used for admission (active reservation for a user and book)
4. **Listings** for members, the staff approval queue and overdue reports
5. **Conservation counts** of capacity-consuming reservations per book

Like the catalog repository it never commits; the lending service owns the
transaction boundary.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, desc, func, select

from ..errors import NotFoundError
from ..models.reservation import ACCESS_STATUSES, ACTIVE_STATUSES, Reservation, ReservationStatus
from ..observability.context import trace_repository_operation
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Reservation as ReservationDB
from .schema import ReservationStatusEnum

logger = logging.getLogger(__name__)

_ACTIVE_DB_STATUSES = [ReservationStatusEnum(status.value) for status in ACTIVE_STATUSES]
_ACCESS_DB_STATUSES = [ReservationStatusEnum(status.value) for status in ACCESS_STATUSES]

# Fields a transition may set alongside the status.
_TRANSITION_FIELDS = frozenset({"approved_by", "approved_at", "due_date", "returned_at", "notes"})


class ReservationRepository(BaseRepository[ReservationDB, Reservation]):
    """
    Repository for reservation ledger entries.
    """

    @property
    def model_class(self) -> type[ReservationDB]:
        return ReservationDB

    def create(
        self, user_id: str, book_id: str, reserved_at: datetime, notes: str | None = None
    ) -> Reservation:
        """
        Record a new ``PENDING`` reservation.

        The caller must pair this with the matching capacity adjustment in the
        same transaction.
        """
        with trace_repository_operation("reservations", "create", "book_reservations"):
            reservation = ReservationDB(
                id=self._generate_reservation_id(),
                user_id=user_id,
                book_id=book_id,
                status=ReservationStatusEnum.PENDING,
                reserved_at=reserved_at,
                renewal_count=0,
                notes=notes,
                created_at=reserved_at,
                updated_at=reserved_at,
            )
            self.session.add(reservation)

        logger.debug("Ledger entry %s created for user %s, book %s", reservation.id, user_id, book_id)
        return self._to_response_model(reservation)

    def get(self, reservation_id: str) -> Reservation:
        """
        Get a reservation snapshot.

        Raises:
            NotFoundError: If the reservation does not exist
        """
        return self._to_response_model(self._load(reservation_id))

    def get_for_update(self, reservation_id: str) -> Reservation:
        """Like ``get`` but takes a row lock where the store supports it."""
        return self._to_response_model(self._load(reservation_id, for_update=True))

    def find_active(self, user_id: str, book_id: str) -> Reservation | None:
        """Return the user's active reservation for a book, if any."""
        row = self.session.execute(
            select(ReservationDB).where(
                and_(
                    ReservationDB.user_id == user_id,
                    ReservationDB.book_id == book_id,
                    ReservationDB.status.in_(_ACTIVE_DB_STATUSES),
                )
            )
        ).scalar_one_or_none()
        return self._to_response_model(row) if row is not None else None

    def record_transition(
        self, reservation_id: str, target: ReservationStatus, updated_at: datetime, **changes: Any
    ) -> Reservation:
        """
        Write a status change and the fields that accompany it.

        Only the lending state machine calls this; it has already checked that
        the change is legal.
        """
        unknown = set(changes) - _TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be set by a transition: {sorted(unknown)}")

        with trace_repository_operation("reservations", "record_transition", "book_reservations"):
            row = self._load(reservation_id, for_update=True)
            row.status = ReservationStatusEnum(target.value)
            for field, value in changes.items():
                setattr(row, field, value)
            row.updated_at = updated_at

        return self._to_response_model(row)

    def list_for_user(
        self, user_id: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        """A user's reservations, newest first."""
        query = (
            select(ReservationDB)
            .where(ReservationDB.user_id == user_id)
            .order_by(desc(ReservationDB.reserved_at))
        )
        return self._paginate(query, pagination)

    def list_by_status(
        self, status: ReservationStatus, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        """Reservations in one status, oldest request first."""
        query = (
            select(ReservationDB)
            .where(ReservationDB.status == ReservationStatusEnum(status.value))
            .order_by(ReservationDB.reserved_at)
        )
        return self._paginate(query, pagination)

    def list_expired(
        self, now: datetime, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        """Reservations whose access window lapsed before ``now`` without a return."""
        query = (
            select(ReservationDB)
            .where(
                and_(
                    ReservationDB.status.in_(_ACCESS_DB_STATUSES),
                    ReservationDB.due_date.is_not(None),
                    ReservationDB.due_date < now,
                )
            )
            .order_by(ReservationDB.due_date)
        )
        return self._paginate(query, pagination)

    def count_capacity_consuming(self, book_id: str) -> int:
        """Number of reservations on a book that currently hold capacity."""
        return (
            self.session.execute(
                select(func.count())
                .select_from(ReservationDB)
                .where(
                    and_(
                        ReservationDB.book_id == book_id,
                        ReservationDB.status.in_(_ACTIVE_DB_STATUSES),
                    )
                )
            ).scalar()
            or 0
        )

    def count_with_access(self, book_id: str, exclude_id: str | None = None) -> int:
        """Number of reservations on a book that currently grant file access."""
        query = (
            select(func.count())
            .select_from(ReservationDB)
            .where(
                and_(
                    ReservationDB.book_id == book_id,
                    ReservationDB.status.in_(_ACCESS_DB_STATUSES),
                )
            )
        )
        if exclude_id is not None:
            query = query.where(ReservationDB.id != exclude_id)
        return self.session.execute(query).scalar() or 0

    def _load(self, reservation_id: str, for_update: bool = False) -> ReservationDB:
        row = self._get_row(reservation_id, for_update=for_update)
        if row is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return row

    def _paginate(self, query, pagination: PaginationParams | None):
        """Helper to paginate reservation queries."""
        if not pagination:
            pagination = PaginationParams()

        pagination.validate_params()

        count_query = select(func.count()).select_from(query.subquery())
        total = self.session.execute(count_query).scalar() or 0

        results = (
            self.session.execute(query.offset(pagination.offset).limit(pagination.page_size))
            .scalars()
            .all()
        )
        return PaginatedResponse.build(
            [self._to_response_model(row) for row in results], total, pagination
        )

    def _generate_reservation_id(self) -> str:
        return f"reservation_{uuid4().hex[:16]}"

    def _to_response_model(self, db_obj: ReservationDB) -> Reservation:
        return Reservation(
            id=db_obj.id,
            user_id=db_obj.user_id,
            book_id=db_obj.book_id,
            status=ReservationStatus(db_obj.status.value),
            reserved_at=db_obj.reserved_at,
            approved_by=db_obj.approved_by,
            approved_at=db_obj.approved_at,
            due_date=db_obj.due_date,
            returned_at=db_obj.returned_at,
            renewal_count=db_obj.renewal_count,
            notes=db_obj.notes,
        )
