"""
Lending State Machine.

Every status change of a reservation goes through ``LendingStateMachine.apply``.
The legal moves are listed once, in ``TRANSITIONS``:

    PENDING     -> APPROVED     staff           set approval fields and due date,
                                                unlock a digital book
    PENDING     -> CANCELLED    staff or owner  release capacity
    APPROVED    -> CHECKED_OUT  staff           status only
    CHECKED_OUT -> RETURNED     staff           set returned_at, release capacity,
                                                lock a digital book

Any other pair, including a move to the status the reservation already has,
is rejected with ``InvalidTransitionError`` before anything is written.
"""

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from ..database.catalog_repository import CatalogRepository
from ..database.reservation_repository import ReservationRepository
from ..errors import ForbiddenError, InvalidTransitionError
from ..models.actor import Actor
from ..models.book import CatalogBook
from ..models.reservation import Reservation, ReservationStatus
from .capacity import release_capacity
from .notifications import NotificationKind

logger = logging.getLogger(__name__)

DEFAULT_LOAN_PERIOD = timedelta(days=14)


class TransitionRule(BaseModel):
    """One row of the transition table."""

    source: ReservationStatus
    target: ReservationStatus
    owner_allowed: bool = False
    releases_capacity: bool = False
    notification: NotificationKind | None = None

    model_config = ConfigDict(frozen=True)


TRANSITIONS: dict[tuple[ReservationStatus, ReservationStatus], TransitionRule] = {
    (rule.source, rule.target): rule
    for rule in (
        TransitionRule(
            source=ReservationStatus.PENDING,
            target=ReservationStatus.APPROVED,
            notification=NotificationKind.APPROVED,
        ),
        TransitionRule(
            source=ReservationStatus.PENDING,
            target=ReservationStatus.CANCELLED,
            owner_allowed=True,
            releases_capacity=True,
            notification=NotificationKind.REJECTED,
        ),
        TransitionRule(
            source=ReservationStatus.APPROVED,
            target=ReservationStatus.CHECKED_OUT,
        ),
        TransitionRule(
            source=ReservationStatus.CHECKED_OUT,
            target=ReservationStatus.RETURNED,
            releases_capacity=True,
            notification=NotificationKind.RETURNED,
        ),
    )
}


class TransitionResult(BaseModel):
    """Outcome of an applied transition, before commit."""

    reservation: Reservation
    book: CatalogBook
    previous_status: ReservationStatus
    notification: NotificationKind | None = None

    model_config = ConfigDict(frozen=True)


def validate_transition(
    reservation: Reservation, target: ReservationStatus, actor: Actor
) -> TransitionRule:
    """
    Look up the rule for moving ``reservation`` to ``target`` on behalf of ``actor``.

    Raises:
        InvalidTransitionError: If the move is not in the transition table
        ForbiddenError: If the actor may not make the move
    """
    current = reservation.status
    rule = TRANSITIONS.get((current, target))
    if rule is None:
        raise InvalidTransitionError(
            f"Cannot change reservation {reservation.id} from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )

    if actor.is_staff:
        return rule
    if rule.owner_allowed and actor.user_id == reservation.user_id:
        return rule

    raise ForbiddenError(
        f"User {actor.user_id} may not change reservation {reservation.id} to {target.value}"
    )


class LendingStateMachine:
    """Applies validated transitions together with their catalog side effects."""

    def __init__(
        self,
        catalog: CatalogRepository,
        ledger: ReservationRepository,
        loan_period: timedelta = DEFAULT_LOAN_PERIOD,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.loan_period = loan_period

    def apply(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        actor: Actor,
        now: datetime,
        notes: str | None = None,
    ) -> TransitionResult:
        """
        Move ``reservation`` to ``target``.

        The ledger write and the catalog side effects are issued in the
        caller's session; nothing is committed here.
        """
        rule = validate_transition(reservation, target, actor)
        book = self.catalog.get_book(reservation.book_id)

        changes: dict = {}
        if notes is not None:
            changes["notes"] = notes

        if target == ReservationStatus.APPROVED:
            changes.update(
                approved_by=actor.user_id,
                approved_at=now,
                due_date=now + self.loan_period,
            )
            if book.is_digital:
                book = self.catalog.set_locked(book.id, False)

        elif target == ReservationStatus.RETURNED:
            changes["returned_at"] = now

        if rule.releases_capacity:
            book = release_capacity(self.catalog, book)

        if target == ReservationStatus.RETURNED and book.is_digital:
            # Other readers of a multi-slot book keep their access
            if self.ledger.count_with_access(book.id, exclude_id=reservation.id) == 0:
                book = self.catalog.set_locked(book.id, True)

        updated = self.ledger.record_transition(reservation.id, target, updated_at=now, **changes)

        notification = rule.notification
        if notification == NotificationKind.REJECTED and not actor.is_staff:
            notification = None

        logger.debug(
            "Reservation %s: %s -> %s by %s",
            reservation.id,
            reservation.status.value,
            target.value,
            actor.user_id,
        )
        return TransitionResult(
            reservation=updated,
            book=book,
            previous_status=reservation.status,
            notification=notification,
        )
