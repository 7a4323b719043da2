"""Context managers for tracing lending and database operations."""

from contextlib import contextmanager

import logfire


@contextmanager
def trace_repository_operation(repository: str, operation: str, table: str | None = None):
    """Context manager for tracing repository operations."""
    with logfire.span(
        f"db.{repository}.{operation}",
        db_repository=repository,
        db_operation=operation,
        db_table=table or repository,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("db.error", str(e))
            raise


@contextmanager
def trace_lending_operation(operation: str, **attributes):
    """Span around one atomic lending operation, retries included."""
    with logfire.span(f"lending.{operation}", lending_operation=operation, **attributes) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("lending.error_type", type(e).__name__)
            span.set_attribute("lending.error", str(e))
            raise
