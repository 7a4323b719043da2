"""Tests for best-effort notification delivery."""

import logging

from library_lending.lending.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    NotificationKind,
    deliver,
)


def event(kind: NotificationKind, reservation_id: str = "reservation_abcdef01") -> NotificationEvent:
    return NotificationEvent(
        kind=kind,
        reservation_id=reservation_id,
        user_id="U1",
        book_id="B1",
        book_title="Things Fall Apart",
    )


class FlakyDispatcher(NotificationDispatcher):
    """Fails for rejections only."""

    def __init__(self):
        self.delivered = []

    def dispatch(self, event: NotificationEvent) -> None:
        if event.kind == NotificationKind.REJECTED:
            raise TimeoutError("push gateway timed out")
        self.delivered.append(event.kind)


def test_failures_are_isolated_per_event(caplog):
    dispatcher = FlakyDispatcher()
    events = [
        event(NotificationKind.APPROVED),
        event(NotificationKind.REJECTED, "reservation_abcdef02"),
        event(NotificationKind.RETURNED),
    ]

    with caplog.at_level(logging.ERROR):
        delivered = deliver(dispatcher, events)

    assert delivered == 2
    assert dispatcher.delivered == [NotificationKind.APPROVED, NotificationKind.RETURNED]
    assert "reservation_abcdef02" in caplog.text


def test_logging_dispatcher_writes_to_service_log(caplog):
    with caplog.at_level(logging.INFO, logger="library_lending.lending.notifications"):
        assert deliver(LoggingNotificationDispatcher(), [event(NotificationKind.APPROVED)]) == 1

    assert "reservation-approved" in caplog.text
    assert "Things Fall Apart" in caplog.text
