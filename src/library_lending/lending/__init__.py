"""
Reservation and digital lending lifecycle.

- CapacityGuard: admission of new reservation requests
- LendingStateMachine: the only path for reservation status changes
- AccessGate: read-time check for digital content
- LendingService: transactional orchestration, retries and notifications
"""

from .access import AccessGate
from .capacity import CapacityGuard
from .notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    NotificationKind,
)
from .service import (
    LendingService,
    get_lending_service,
    reset_lending_service,
    set_lending_service,
)
from .state_machine import TRANSITIONS, LendingStateMachine, TransitionRule, validate_transition

__all__ = [
    "TRANSITIONS",
    "AccessGate",
    "CapacityGuard",
    "LendingService",
    "LendingStateMachine",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationKind",
    "TransitionRule",
    "get_lending_service",
    "reset_lending_service",
    "set_lending_service",
    "validate_transition",
]
