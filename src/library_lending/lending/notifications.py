"""
Notification dispatch contract.

Lifecycle notifications are emitted only after the transition that caused
them has committed. Delivery is best-effort: a dispatcher failure is logged
and never reaches the caller, and never undoes the transition.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    APPROVED = "reservation-approved"
    REJECTED = "reservation-rejected"
    RETURNED = "reservation-returned"


class NotificationEvent(BaseModel):
    """Payload handed to the notification dispatcher."""

    kind: NotificationKind
    reservation_id: str
    user_id: str
    book_id: str
    book_title: str
    due_date: datetime | None = None

    model_config = ConfigDict(frozen=True)


class NotificationDispatcher(ABC):
    """Delivers lifecycle notifications (email, push, ...)."""

    @abstractmethod
    def dispatch(self, event: NotificationEvent) -> None:
        """Deliver one event. May raise; callers isolate failures."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records each event in the service log."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification %s for user %s: '%s' (reservation %s, due %s)",
            event.kind.value,
            event.user_id,
            event.book_title,
            event.reservation_id,
            event.due_date.isoformat() if event.due_date else "-",
        )


def deliver(dispatcher: NotificationDispatcher, events: Iterable[NotificationEvent]) -> int:
    """Dispatch events, swallowing failures. Returns the number delivered."""
    delivered = 0
    for event in events:
        try:
            dispatcher.dispatch(event)
            delivered += 1
        except Exception:
            logger.exception(
                "Failed to deliver %s notification for reservation %s",
                event.kind.value,
                event.reservation_id,
            )
    return delivered
