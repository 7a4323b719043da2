"""Test configuration and fixtures for the Library Lending service.

1. Isolated test databases - each test gets its own SQLite file
2. Configuration overrides - test-specific lending settings
3. A controllable clock and a recording notification dispatcher
4. Ready-made catalog entries for digital and physical lending
"""

from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session

from library_lending.config import LendingConfig, reset_config
from library_lending.database.catalog_repository import BookCreateSchema
from library_lending.database.session import DatabaseManager
from library_lending.lending.notifications import NotificationDispatcher, NotificationEvent
from library_lending.lending.service import (
    LendingService,
    reset_lending_service,
    set_lending_service,
)
from library_lending.models.actor import Actor, Role
from library_lending.models.book import CatalogBook

# === Pytest Configuration ===


def pytest_configure(config):  # noqa: ARG001
    """Keep spans and metrics local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


# === Test Doubles ===


class FakeClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every dispatched event; can be told to fail."""

    def __init__(self):
        self.events: list[NotificationEvent] = []
        self.fail = False

    def dispatch(self, event: NotificationEvent) -> None:
        if self.fail:
            raise ConnectionError("mail relay unavailable")
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


# === Test Database Fixtures ===


@pytest.fixture(autouse=True)
def isolated_config() -> Generator[None, None, None]:
    """Never leak a configuration singleton between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_lending.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_config(test_db_path: Path) -> LendingConfig:
    """Lending configuration pointing at the test database."""
    return LendingConfig(
        server_name="test-library-lending",
        server_version="0.0.1-test",
        database_path=test_db_path,
        loan_period_days=14,
        max_transaction_retries=3,
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A database manager with a freshly created schema."""
    manager = DatabaseManager(test_database_url)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """A raw session for repository tests. Nothing is committed unless a test commits."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# === Lending Service Fixtures ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 10, 0, 0))


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def lending_service(
    db_manager: DatabaseManager,
    clock: FakeClock,
    dispatcher: RecordingDispatcher,
    test_config: LendingConfig,
) -> Generator[LendingService, None, None]:
    """Lending service wired to the test database and installed as the global one."""
    service = LendingService(
        db_manager=db_manager, clock=clock, dispatcher=dispatcher, config=test_config
    )
    set_lending_service(service)
    yield service
    reset_lending_service()


@pytest.fixture
def staff() -> Actor:
    return Actor(user_id="staff_1", role=Role.LIBRARIAN)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin_1", role=Role.ADMIN)


@pytest.fixture
def member() -> Actor:
    return Actor(user_id="U1", role=Role.MEMBER)


# === Catalog Fixtures ===


@pytest.fixture
def digital_book(lending_service: LendingService) -> CatalogBook:
    """Digital book with a single reservation slot."""
    return lending_service.add_book(
        BookCreateSchema(
            id="B1",
            title="Things Fall Apart",
            author="Chinua Achebe",
            total_copies=0,
            is_digital=True,
            digital_file="ebooks/things-fall-apart.pdf",
            max_reservations=1,
        )
    )


@pytest.fixture
def shared_digital_book(lending_service: LendingService) -> CatalogBook:
    """Digital book that two readers can hold at once."""
    return lending_service.add_book(
        BookCreateSchema(
            id="B2",
            title="Half of a Yellow Sun",
            author="Chimamanda Ngozi Adichie",
            total_copies=0,
            is_digital=True,
            digital_file="ebooks/half-of-a-yellow-sun.epub",
            max_reservations=2,
        )
    )


@pytest.fixture
def physical_book(lending_service: LendingService) -> CatalogBook:
    """Physical book with two copies on the shelf."""
    return lending_service.add_book(
        BookCreateSchema(
            id="P1",
            title="The Great Gatsby",
            author="F. Scott Fitzgerald",
            isbn="9780743273565",
            total_copies=2,
        )
    )
