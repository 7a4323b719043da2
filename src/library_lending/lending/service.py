"""
Lending service: the transactional entry point of the lending lifecycle.

Each public operation runs as one unit of work in a fresh session:

1. The Capacity Guard, the State Machine or the Access Gate issues its reads
   and writes through the catalog and ledger repositories.
2. The session commits. The book's version counter turns a concurrent
   capacity change into ``StaleDataError`` at flush time; SQLite reports a
   contended write lock as ``OperationalError``. Both are retried in a fresh
   session up to ``max_transaction_retries`` times, then surface as
   ``ConflictError``.
3. Only after a successful commit are notifications dispatched.

Business errors (``LendingError`` subclasses) roll back and propagate
unchanged; they are never retried.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import LendingConfig, get_config
from ..database.catalog_repository import BookCreateSchema, CatalogRepository
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.reservation_repository import ReservationRepository
from ..database.session import DatabaseManager, get_db_manager
from ..errors import ConflictError, ForbiddenError
from ..models.access import AccessGrant
from ..models.actor import Actor
from ..models.book import BookAvailability, CatalogBook
from ..models.reservation import Reservation, ReservationStatus
from ..observability.context import trace_lending_operation
from ..observability.metrics import record_retry, record_transition
from .access import AccessGate
from .capacity import CapacityGuard
from .notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    deliver,
)
from .state_machine import LendingStateMachine, TransitionResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLite busy/locked errors and PostgreSQL serialization or deadlock failures
_RETRYABLE_PGCODES = {"40001", "40P01"}


def _is_serialization_failure(error: OperationalError) -> bool:
    if getattr(error.orig, "pgcode", None) in _RETRYABLE_PGCODES:
        return True
    return "locked" in str(error.orig).lower()


class LendingService:
    """
    Reservation lifecycle operations over the lending store.

    Args:
        db_manager: Database manager to open sessions from (global one by default)
        clock: Returns the current instant (``datetime.now`` by default)
        dispatcher: Receives lifecycle notifications after commit
        config: Lending configuration (global one by default)
    """

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        clock: Callable[[], datetime] | None = None,
        dispatcher: NotificationDispatcher | None = None,
        config: LendingConfig | None = None,
    ):
        self._db_manager = db_manager
        self._config = config
        self.clock = clock or datetime.now
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()

    @property
    def db_manager(self) -> DatabaseManager:
        if self._db_manager is None:
            self._db_manager = get_db_manager()
        return self._db_manager

    @property
    def config(self) -> LendingConfig:
        return self._config or get_config()

    # ------------------------------------------------------------------
    # Capacity Guard
    # ------------------------------------------------------------------

    def request_reservation(
        self, user_id: str, book_id: str, notes: str | None = None
    ) -> Reservation:
        """
        Reserve a book for a user. The reservation starts ``PENDING`` and holds
        one digital slot or one physical copy.
        """
        now = self.clock()

        def work(session: Session) -> Reservation:
            guard = CapacityGuard(CatalogRepository(session), ReservationRepository(session))
            return guard.admit(user_id, book_id, now, notes=notes)

        reservation = self._run_atomic(
            "request_reservation", work, user_id=user_id, book_id=book_id
        )
        record_transition(None, reservation.status.value)
        logger.info(
            "Reservation %s created for user %s on book %s", reservation.id, user_id, book_id
        )
        return reservation

    # ------------------------------------------------------------------
    # Lending State Machine
    # ------------------------------------------------------------------

    def update_status(
        self,
        actor: Actor,
        reservation_id: str,
        target: ReservationStatus,
        notes: str | None = None,
    ) -> Reservation:
        """Move a reservation to ``target`` if the transition table allows it."""
        now = self.clock()
        loan_period = timedelta(days=self.config.loan_period_days)

        def work(session: Session) -> TransitionResult:
            catalog = CatalogRepository(session)
            ledger = ReservationRepository(session)
            machine = LendingStateMachine(catalog, ledger, loan_period=loan_period)
            reservation = ledger.get_for_update(reservation_id)
            return machine.apply(reservation, target, actor, now, notes=notes)

        result = self._run_atomic(
            "update_status",
            work,
            reservation_id=reservation_id,
            target_status=target.value,
            actor_id=actor.user_id,
        )

        record_transition(result.previous_status.value, target.value)
        logger.info(
            "Reservation %s moved %s -> %s by %s",
            reservation_id,
            result.previous_status.value,
            target.value,
            actor.user_id,
        )
        self._notify(result)
        return result.reservation

    def approve(self, actor: Actor, reservation_id: str, notes: str | None = None) -> Reservation:
        return self.update_status(actor, reservation_id, ReservationStatus.APPROVED, notes)

    def reject(self, actor: Actor, reservation_id: str, notes: str | None = None) -> Reservation:
        """Staff rejection of a pending request."""
        if not actor.is_staff:
            raise ForbiddenError("Only staff can reject reservation requests")
        return self.update_status(actor, reservation_id, ReservationStatus.CANCELLED, notes)

    def cancel(self, actor: Actor, reservation_id: str, notes: str | None = None) -> Reservation:
        """Cancel a pending request as its owner or as staff."""
        return self.update_status(actor, reservation_id, ReservationStatus.CANCELLED, notes)

    def check_out(self, actor: Actor, reservation_id: str) -> Reservation:
        return self.update_status(actor, reservation_id, ReservationStatus.CHECKED_OUT)

    def return_book(self, actor: Actor, reservation_id: str) -> Reservation:
        return self.update_status(actor, reservation_id, ReservationStatus.RETURNED)

    # ------------------------------------------------------------------
    # Access Gate
    # ------------------------------------------------------------------

    def check_access(
        self, user_id: str, reservation_id: str, now: datetime | None = None
    ) -> AccessGrant:
        """Decide whether the user may open the reservation's digital file now."""
        at = now or self.clock()
        base_url = self.config.digital_file_base_url

        with trace_lending_operation(
            "check_access", user_id=user_id, reservation_id=reservation_id
        ), self.db_manager.session_scope() as session:
            gate = AccessGate(
                CatalogRepository(session), ReservationRepository(session), file_base_url=base_url
            )
            return gate.check_access(user_id, reservation_id, at)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_reservation(self, reservation_id: str) -> Reservation:
        with self.db_manager.session_scope() as session:
            return ReservationRepository(session).get(reservation_id)

    def list_user_reservations(
        self, user_id: str, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        with self.db_manager.session_scope() as session:
            return ReservationRepository(session).list_for_user(user_id, pagination)

    def list_reservations_by_status(
        self, status: ReservationStatus, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        with self.db_manager.session_scope() as session:
            return ReservationRepository(session).list_by_status(status, pagination)

    def list_overdue(
        self, now: datetime | None = None, pagination: PaginationParams | None = None
    ) -> PaginatedResponse[Reservation]:
        """Approved or checked out reservations whose due date has passed. Read-only."""
        at = now or self.clock()
        with self.db_manager.session_scope() as session:
            return ReservationRepository(session).list_expired(at, pagination)

    def get_book(self, book_id: str) -> CatalogBook:
        with self.db_manager.session_scope() as session:
            return CatalogRepository(session).get_book(book_id)

    def get_availability(self, book_id: str) -> BookAvailability:
        with self.db_manager.session_scope() as session:
            return CatalogRepository(session).get_availability(book_id)

    def add_book(self, data: BookCreateSchema) -> CatalogBook:
        """Register a book with the lending catalog."""

        def work(session: Session) -> CatalogBook:
            return CatalogRepository(session).add_book(data)

        return self._run_atomic("add_book", work, book_id=data.id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_atomic(self, operation: str, work: Callable[[Session], T], **attributes) -> T:
        """Run ``work`` in one transaction, retrying serialization failures."""
        retries = self.config.max_transaction_retries
        last_error: Exception | None = None

        with trace_lending_operation(operation, **attributes) as span:
            for attempt in range(1, retries + 2):
                session = self.db_manager.create_session()
                try:
                    result = work(session)
                    session.commit()
                    span.set_attribute("lending.attempts", attempt)
                    return result
                except IntegrityError as e:
                    session.rollback()
                    logger.info("%s rejected by store constraint: %s", operation, e.orig)
                    raise ConflictError(
                        f"{operation} conflicts with the current state of the store"
                    ) from e
                except (StaleDataError, OperationalError) as e:
                    session.rollback()
                    if isinstance(e, OperationalError) and not _is_serialization_failure(e):
                        raise
                    last_error = e
                    record_retry(operation)
                    logger.warning(
                        "%s hit a concurrent update (attempt %d of %d): %s",
                        operation,
                        attempt,
                        retries + 1,
                        e,
                    )
                except Exception:
                    session.rollback()
                    raise
                finally:
                    session.close()

        raise ConflictError(
            f"{operation} could not complete after {retries + 1} attempts "
            "because of concurrent updates"
        ) from last_error

    def _notify(self, result: TransitionResult) -> None:
        if result.notification is None or not self.config.enable_notifications:
            return
        event = NotificationEvent(
            kind=result.notification,
            reservation_id=result.reservation.id,
            user_id=result.reservation.user_id,
            book_id=result.book.id,
            book_title=result.book.title,
            due_date=result.reservation.due_date,
        )
        deliver(self.dispatcher, [event])


class _ServiceStore:
    """Internal storage for the service singleton."""

    _instance: LendingService | None = None


def get_lending_service() -> LendingService:
    """Get or create the global lending service."""
    if _ServiceStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ServiceStore._instance = LendingService()  # type: ignore[reportPrivateUsage]
    return _ServiceStore._instance  # type: ignore[reportPrivateUsage]


def set_lending_service(service: LendingService | None) -> None:
    """Install a specific service instance (useful for testing)."""
    _ServiceStore._instance = service  # type: ignore[reportPrivateUsage]


def reset_lending_service() -> None:
    _ServiceStore._instance = None  # type: ignore[reportPrivateUsage]
