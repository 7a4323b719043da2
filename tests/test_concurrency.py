"""Concurrency tests for reservation admission and status changes.

The interleaving tests run a competing request to completion in the middle of
another request's transaction, after its reads and before its writes. The
losing transaction must either retry against the new state or fail cleanly.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from library_lending.database.catalog_repository import BookCreateSchema
from library_lending.database.reservation_repository import ReservationRepository
from library_lending.errors import ConflictError, InvalidRequestError, InvalidTransitionError
from library_lending.lending.service import LendingService
from library_lending.models.reservation import ReservationStatus

pytestmark = pytest.mark.concurrency


def interleave_before(monkeypatch, method_name: str, rival) -> list:
    """
    Run ``rival()`` inside every outer call of ``ReservationRepository.<method_name>``.

    Calls made by the rival itself are passed straight through. Returns the
    list of rival results.
    """
    original = getattr(ReservationRepository, method_name)
    results = []
    state = {"inside_rival": False}

    def patched(self, *args, **kwargs):
        if not state["inside_rival"]:
            state["inside_rival"] = True
            try:
                results.append(rival())
            finally:
                state["inside_rival"] = False
        return original(self, *args, **kwargs)

    monkeypatch.setattr(ReservationRepository, method_name, patched)
    return results


def interleave_once(monkeypatch, method_name: str, rival) -> list:
    calls = []

    def once():
        if calls:
            return None
        calls.append(True)
        return rival()

    return interleave_before(monkeypatch, method_name, once)


class TestLastSlotRace:
    def test_loser_retries_and_sees_the_slot_taken(
        self, monkeypatch, lending_service: LendingService, digital_book
    ):
        rivals = interleave_once(
            monkeypatch,
            "find_active",
            lambda: lending_service.request_reservation("U2", digital_book.id),
        )

        with pytest.raises(InvalidRequestError):
            lending_service.request_reservation("U1", digital_book.id)

        assert rivals[0].user_id == "U2"
        assert lending_service.get_book(digital_book.id).current_reservations == 1
        assert lending_service.list_user_reservations("U1").total == 0

    def test_loser_succeeds_on_retry_when_room_remains(
        self, monkeypatch, lending_service: LendingService, shared_digital_book
    ):
        interleave_once(
            monkeypatch,
            "find_active",
            lambda: lending_service.request_reservation("U2", shared_digital_book.id),
        )

        reservation = lending_service.request_reservation("U1", shared_digital_book.id)

        assert reservation.status == ReservationStatus.PENDING
        assert lending_service.get_book(shared_digital_book.id).current_reservations == 2

    def test_physical_last_copy(self, monkeypatch, lending_service: LendingService):
        book = lending_service.add_book(
            BookCreateSchema(id="P_last", title="Invisible Man", total_copies=1)
        )
        interleave_once(
            monkeypatch,
            "find_active",
            lambda: lending_service.request_reservation("U2", book.id),
        )

        with pytest.raises(InvalidRequestError):
            lending_service.request_reservation("U1", book.id)

        assert lending_service.get_book(book.id).available_copies == 0


class TestRetryBudget:
    def test_conflict_after_retries_exhausted(
        self, monkeypatch, lending_service, db_manager, clock, test_config
    ):
        book = lending_service.add_book(
            BookCreateSchema(
                id="B_busy",
                title="Popular Title",
                total_copies=0,
                is_digital=True,
                digital_file="ebooks/popular.pdf",
                max_reservations=10,
            )
        )
        impatient = LendingService(
            db_manager=db_manager,
            clock=clock,
            config=test_config.model_copy(update={"max_transaction_retries": 1}),
        )
        rival_users = iter(["U2", "U3", "U4"])
        rivals = interleave_before(
            monkeypatch,
            "find_active",
            lambda: lending_service.request_reservation(next(rival_users), book.id),
        )

        with pytest.raises(ConflictError):
            impatient.request_reservation("U1", book.id)

        assert len(rivals) == 2
        assert lending_service.get_book(book.id).current_reservations == 2
        assert lending_service.list_user_reservations("U1").total == 0


class TestSameUserRace:
    def test_duplicate_request_conflicts(
        self, monkeypatch, lending_service: LendingService, physical_book
    ):
        interleave_once(
            monkeypatch,
            "create",
            lambda: lending_service.request_reservation("U1", physical_book.id),
        )

        with pytest.raises(ConflictError):
            lending_service.request_reservation("U1", physical_book.id)

        history = lending_service.list_user_reservations("U1")
        assert history.total == 1
        assert lending_service.get_book(physical_book.id).available_copies == 1


class TestConcurrentTransitions:
    def test_double_approval_applies_once(
        self, monkeypatch, lending_service: LendingService, shared_digital_book, staff, admin
    ):
        reservation = lending_service.request_reservation("U1", shared_digital_book.id)
        interleave_once(
            monkeypatch,
            "record_transition",
            lambda: lending_service.approve(admin, reservation.id),
        )

        # The retry sees the reservation already approved
        with pytest.raises(InvalidTransitionError):
            lending_service.approve(staff, reservation.id)

        stored = lending_service.get_reservation(reservation.id)
        assert stored.status == ReservationStatus.APPROVED
        assert stored.approved_by == admin.user_id

    def test_return_does_not_lock_out_a_reader_approved_meanwhile(
        self, monkeypatch, lending_service: LendingService, shared_digital_book, staff, admin
    ):
        returning = lending_service.request_reservation("U1", shared_digital_book.id)
        lending_service.approve(staff, returning.id)
        lending_service.check_out(staff, returning.id)
        waiting = lending_service.request_reservation("U2", shared_digital_book.id)

        # The approval commits after the return has decided to re-lock the book
        interleave_once(
            monkeypatch,
            "record_transition",
            lambda: lending_service.approve(admin, waiting.id),
        )

        returned = lending_service.return_book(staff, returning.id)

        assert returned.status == ReservationStatus.RETURNED
        book = lending_service.get_book(shared_digital_book.id)
        assert book.is_locked is False
        assert book.current_reservations == 1
        grant = lending_service.check_access("U2", waiting.id)
        assert grant.status == ReservationStatus.APPROVED


class TestThreadedRequests:
    def test_single_slot_admits_exactly_one(
        self, lending_service: LendingService, digital_book
    ):
        users = [f"reader_{index}" for index in range(5)]
        barrier = threading.Barrier(len(users))

        def attempt(user_id: str):
            barrier.wait()
            try:
                return lending_service.request_reservation(user_id, digital_book.id)
            except (InvalidRequestError, ConflictError) as e:
                return e

        with ThreadPoolExecutor(max_workers=len(users)) as pool:
            outcomes = list(pool.map(attempt, users))

        admitted = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(admitted) == 1
        assert lending_service.get_book(digital_book.id).current_reservations == 1
        assert lending_service.list_reservations_by_status(ReservationStatus.PENDING).total == 1
