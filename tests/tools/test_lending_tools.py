"""
Tests for the lending tools (reserve, status update, cancel, ebook access).

The handlers run against the lending service installed by the
``lending_service`` fixture, so every call goes through a real database.
"""

import pytest

from library_lending.models.reservation import ReservationStatus
from library_lending.tools import all_tools
from library_lending.tools.access import access_ebook_handler
from library_lending.tools.reservations import (
    cancel_reservation_handler,
    reserve_book_handler,
    update_reservation_status_handler,
)


async def reserve(user_id: str, book_id: str) -> str:
    result = await reserve_book_handler({"user_id": user_id, "book_id": book_id})
    assert "isError" not in result
    return result["data"]["reservation"]["id"]


class TestToolRegistration:
    def test_all_tools_have_schema_and_handler(self):
        names = {tool["name"] for tool in all_tools}
        assert names == {
            "reserve_book",
            "update_reservation_status",
            "cancel_reservation",
            "access_ebook",
        }
        for tool in all_tools:
            assert tool["inputSchema"]["type"] == "object"
            assert callable(tool["handler"])


class TestReserveBookTool:
    async def test_reserve_success(self, lending_service, digital_book):
        result = await reserve_book_handler(
            {"user_id": "U1", "book_id": digital_book.id, "notes": "Book club"}
        )

        assert "isError" not in result
        reservation = result["data"]["reservation"]
        assert reservation["status"] == "PENDING"
        assert reservation["notes"] == "Book club"
        assert "pending staff approval" in result["content"][0]["text"]
        assert lending_service.get_book(digital_book.id).current_reservations == 1

    async def test_missing_user_id(self, lending_service, digital_book):
        result = await reserve_book_handler({"book_id": digital_book.id})

        assert result["isError"] is True
        assert result["errorType"] == "validation_error"

    async def test_no_capacity(self, lending_service, digital_book):
        await reserve("U1", digital_book.id)

        result = await reserve_book_handler({"user_id": "U2", "book_id": digital_book.id})

        assert result["isError"] is True
        assert result["errorType"] == "invalid_request"

    async def test_duplicate(self, lending_service, physical_book):
        await reserve("U1", physical_book.id)

        result = await reserve_book_handler({"user_id": "U1", "book_id": physical_book.id})

        assert result["errorType"] == "conflict"

    async def test_unknown_book(self, lending_service):
        result = await reserve_book_handler({"user_id": "U1", "book_id": "missing_book"})
        assert result["errorType"] == "not_found"


class TestUpdateReservationStatusTool:
    async def test_librarian_approves(self, lending_service, digital_book, dispatcher):
        reservation_id = await reserve("U1", digital_book.id)

        result = await update_reservation_status_handler(
            {
                "actor_id": "staff_1",
                "actor_role": "LIBRARIAN",
                "reservation_id": reservation_id,
                "status": "APPROVED",
            }
        )

        assert "isError" not in result
        data = result["data"]["reservation"]
        assert data["status"] == "APPROVED"
        assert data["approved_by"] == "staff_1"
        assert data["due_date"] is not None
        assert "access is open until" in result["content"][0]["text"]
        assert dispatcher.kinds == ["reservation-approved"]

    async def test_member_cannot_approve(self, lending_service, digital_book):
        reservation_id = await reserve("U1", digital_book.id)

        result = await update_reservation_status_handler(
            {"actor_id": "U1", "reservation_id": reservation_id, "status": "APPROVED"}
        )

        assert result["isError"] is True
        assert result["errorType"] == "forbidden"
        stored = lending_service.get_reservation(reservation_id)
        assert stored.status == ReservationStatus.PENDING

    async def test_illegal_transition_is_an_error(self, lending_service, digital_book):
        reservation_id = await reserve("U1", digital_book.id)

        result = await update_reservation_status_handler(
            {
                "actor_id": "admin_1",
                "actor_role": "ADMIN",
                "reservation_id": reservation_id,
                "status": "RETURNED",
            }
        )

        assert result["isError"] is True
        assert result["errorType"] == "invalid_transition"
        assert "PENDING" in result["content"][0]["text"]

    @pytest.mark.parametrize(
        "arguments",
        [
            {"actor_id": "staff_1", "reservation_id": "bogus", "status": "APPROVED"},
            {"actor_id": "staff_1", "reservation_id": "reservation_abcdef01", "status": "LOST"},
            {"actor_id": "", "reservation_id": "reservation_abcdef01", "status": "APPROVED"},
        ],
    )
    async def test_invalid_arguments(self, lending_service, arguments):
        result = await update_reservation_status_handler(arguments)
        assert result["errorType"] == "validation_error"

    async def test_unknown_reservation(self, lending_service):
        result = await update_reservation_status_handler(
            {
                "actor_id": "staff_1",
                "actor_role": "LIBRARIAN",
                "reservation_id": "reservation_abcdef01",
                "status": "APPROVED",
            }
        )
        assert result["errorType"] == "not_found"


class TestCancelReservationTool:
    async def test_owner_cancels(self, lending_service, physical_book, dispatcher):
        reservation_id = await reserve("U1", physical_book.id)

        result = await cancel_reservation_handler(
            {"actor_id": "U1", "reservation_id": reservation_id, "notes": "No longer needed"}
        )

        assert "isError" not in result
        assert result["data"]["reservation"]["status"] == "CANCELLED"
        assert lending_service.get_book(physical_book.id).available_copies == 2
        assert dispatcher.events == []

    async def test_other_member_cannot_cancel(self, lending_service, physical_book):
        reservation_id = await reserve("U1", physical_book.id)

        result = await cancel_reservation_handler(
            {"actor_id": "U2", "reservation_id": reservation_id}
        )

        assert result["errorType"] == "forbidden"


class TestAccessEbookTool:
    async def test_access_granted(self, lending_service, digital_book, staff):
        reservation_id = await reserve("U1", digital_book.id)
        lending_service.approve(staff, reservation_id)

        result = await access_ebook_handler({"user_id": "U1", "reservation_id": reservation_id})

        assert "isError" not in result
        access = result["data"]["access"]
        assert access["file_reference"] == digital_book.digital_file
        assert access["reservation_id"] == reservation_id
        assert result["content"][0]["text"].startswith("Access granted to 'Things Fall Apart'")

    async def test_pending_reservation_denied(self, lending_service, digital_book):
        reservation_id = await reserve("U1", digital_book.id)

        result = await access_ebook_handler({"user_id": "U1", "reservation_id": reservation_id})

        assert result["isError"] is True
        assert result["errorType"] == "forbidden"

    async def test_expired_reservation_denied(self, lending_service, digital_book, staff, clock):
        reservation_id = await reserve("U1", digital_book.id)
        lending_service.approve(staff, reservation_id)
        clock.advance(days=15)

        result = await access_ebook_handler({"user_id": "U1", "reservation_id": reservation_id})

        assert result["errorType"] == "forbidden"
        assert "expired" in result["content"][0]["text"]
