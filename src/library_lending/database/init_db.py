"""
Initialize the Library Lending database.

This command:
1. Creates the catalog and reservation ledger tables
2. Optionally loads a small sample catalog
3. Verifies the database is ready for the MCP server

Usage:
    library-lending-init-db [--drop-existing] [--sample-data] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from .catalog_repository import BookCreateSchema, CatalogRepository
from .session import DatabaseManager, get_db_manager

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"books", "book_reservations"}

SAMPLE_BOOKS = [
    BookCreateSchema(
        id="book_gatsby_01",
        title="The Great Gatsby",
        author="F. Scott Fitzgerald",
        isbn="9780743273565",
        total_copies=3,
    ),
    BookCreateSchema(
        id="book_mockingbird",
        title="To Kill a Mockingbird",
        author="Harper Lee",
        isbn="9780061120084",
        total_copies=2,
    ),
    BookCreateSchema(
        id="book_orwell_1984",
        title="1984",
        author="George Orwell",
        isbn="9780452284234",
        total_copies=0,
        is_digital=True,
        digital_file="ebooks/orwell-1984.epub",
        max_reservations=2,
    ),
    BookCreateSchema(
        id="book_sicp_ebook",
        title="Structure and Interpretation of Computer Programs",
        author="Harold Abelson",
        total_copies=0,
        is_digital=True,
        digital_file="ebooks/sicp.pdf",
        max_reservations=1,
    ),
]


def load_sample_data(db_manager: DatabaseManager) -> int:
    """Register the sample catalog. Returns the number of books added."""
    with db_manager.session_scope() as session:
        catalog = CatalogRepository(session)
        added = 0
        for book in SAMPLE_BOOKS:
            if catalog.exists(book.id):
                logger.info("Sample book %s already present, skipping", book.id)
                continue
            catalog.add_book(book)
            added += 1
    return added


def main(argv: list[str] | None = None) -> None:
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the Library Lending database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load a sample catalog after creating tables",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args(argv)

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            added = load_sample_data(db_manager)
            logger.info("Loaded %d sample books", added)

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables present: %s", ", ".join(sorted(tables)))

        missing_tables = EXPECTED_TABLES - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", missing_tables)
            sys.exit(1)

        logger.info("Database initialization complete")

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
