"""Tests for the digital content Access Gate."""

from datetime import timedelta

import pytest

from library_lending.database.catalog_repository import BookCreateSchema, CatalogRepository
from library_lending.errors import ForbiddenError, InvalidRequestError, NotFoundError
from library_lending.lending.access import resolve_file_reference
from library_lending.lending.service import LendingService
from library_lending.models.reservation import ReservationStatus


@pytest.fixture
def approved(lending_service, digital_book, staff):
    reservation = lending_service.request_reservation("U1", digital_book.id)
    return lending_service.approve(staff, reservation.id)


class TestGrant:
    def test_owner_with_approved_reservation(self, lending_service, approved, clock):
        grant = lending_service.check_access("U1", approved.id)

        assert grant.reservation_id == approved.id
        assert grant.book_title == "Things Fall Apart"
        assert grant.file_reference == "ebooks/things-fall-apart.pdf"
        assert grant.status == ReservationStatus.APPROVED
        assert grant.due_date == approved.due_date
        assert grant.checked_at == clock.now

    def test_checked_out_reservation(self, lending_service, approved, staff):
        lending_service.check_out(staff, approved.id)
        grant = lending_service.check_access("U1", approved.id)
        assert grant.status == ReservationStatus.CHECKED_OUT

    def test_access_at_the_due_instant(self, lending_service, approved):
        grant = lending_service.check_access("U1", approved.id, now=approved.due_date)
        assert grant.checked_at == approved.due_date

    def test_file_reference_joined_with_base_url(self, approved, db_manager, clock, test_config):
        service = LendingService(
            db_manager=db_manager,
            clock=clock,
            config=test_config.model_copy(
                update={"digital_file_base_url": "https://files.example.org/library"}
            ),
        )

        grant = service.check_access("U1", approved.id)

        assert grant.file_reference == (
            "https://files.example.org/library/ebooks/things-fall-apart.pdf"
        )

    def test_check_is_side_effect_free(self, lending_service, approved, digital_book):
        before = lending_service.get_book(digital_book.id)

        for _ in range(3):
            lending_service.check_access("U1", approved.id)

        after = lending_service.get_book(digital_book.id)
        assert after.current_reservations == before.current_reservations
        assert after.is_locked == before.is_locked
        assert after.updated_at == before.updated_at
        assert lending_service.get_reservation(approved.id) == approved


class TestDenial:
    def test_missing_reservation(self, lending_service):
        with pytest.raises(NotFoundError):
            lending_service.check_access("U1", "reservation_missing01")

    def test_other_users_reservation(self, lending_service, approved):
        with pytest.raises(ForbiddenError, match="another user"):
            lending_service.check_access("U2", approved.id)

    def test_pending_reservation(self, lending_service, digital_book):
        reservation = lending_service.request_reservation("U1", digital_book.id)
        with pytest.raises(ForbiddenError):
            lending_service.check_access("U1", reservation.id)

    def test_expired_approved_reservation(self, lending_service, approved, clock):
        clock.advance(days=14, seconds=1)
        with pytest.raises(ForbiddenError, match="expired"):
            lending_service.check_access("U1", approved.id)

    def test_expired_checked_out_reservation(self, lending_service, approved, staff):
        lending_service.check_out(staff, approved.id)
        later = approved.due_date + timedelta(minutes=1)

        with pytest.raises(ForbiddenError, match="expired"):
            lending_service.check_access("U1", approved.id, now=later)

        assert lending_service.get_reservation(approved.id).status == ReservationStatus.CHECKED_OUT

    def test_returned_reservation(self, lending_service, approved, staff):
        lending_service.check_out(staff, approved.id)
        lending_service.return_book(staff, approved.id)
        with pytest.raises(ForbiddenError):
            lending_service.check_access("U1", approved.id)

    def test_locked_book(self, lending_service, approved, db_manager, digital_book):
        with db_manager.session_scope() as session:
            CatalogRepository(session).set_locked(digital_book.id, True)

        with pytest.raises(ForbiddenError, match="locked"):
            lending_service.check_access("U1", approved.id)

    def test_physical_book_has_no_digital_edition(self, lending_service, physical_book, staff):
        reservation = lending_service.request_reservation("U1", physical_book.id)
        lending_service.approve(staff, reservation.id)

        with pytest.raises(InvalidRequestError, match="no digital edition"):
            lending_service.check_access("U1", reservation.id)

    def test_electronic_book_without_file(self, lending_service, staff):
        book = lending_service.add_book(
            BookCreateSchema(id="E1", title="Field Notes", total_copies=1, is_electronic=True)
        )
        reservation = lending_service.request_reservation("U1", book.id)
        lending_service.approve(staff, reservation.id)

        with pytest.raises(NotFoundError, match="No digital file"):
            lending_service.check_access("U1", reservation.id)


class TestResolveFileReference:
    def test_without_base_url(self):
        assert resolve_file_reference("ebooks/a.pdf") == "ebooks/a.pdf"

    def test_with_base_url(self):
        assert (
            resolve_file_reference("/ebooks/a.pdf", "https://cdn.example.org")
            == "https://cdn.example.org/ebooks/a.pdf"
        )

    def test_absolute_reference_kept(self):
        reference = "https://mirror.example.org/a.pdf"
        assert resolve_file_reference(reference, "https://cdn.example.org") == reference
