"""Custom metrics for the Library Lending service."""

import logfire

reservation_transitions = logfire.metric_counter(
    "library.reservations.transitions",
    description="Reservation status changes by source and target status",
)

transaction_retries = logfire.metric_counter(
    "library.transactions.retries",
    description="Lending transactions retried after a serialization conflict",
)

access_checks = logfire.metric_counter(
    "library.access.checks", description="Digital access checks by outcome"
)


def record_transition(source: str | None, target: str):
    """Record a reservation status change. ``source`` is None for new requests."""
    reservation_transitions.add(1, {"from": source or "NEW", "to": target})


def record_retry(operation: str):
    transaction_retries.add(1, {"operation": operation})


def record_access_check(outcome: str):
    access_checks.add(1, {"outcome": outcome})
