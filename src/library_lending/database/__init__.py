"""
Database package for the Library Lending service.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- The catalog store and reservation ledger repositories
- Database initialization (init_db.py)
"""

from .catalog_repository import BookCreateSchema, CatalogRepository
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .reservation_repository import ReservationRepository
from .schema import Base, Book, Reservation, ReservationStatusEnum
from .session import DatabaseManager, get_db_manager, reset_db_manager

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "CatalogRepository",
    "DatabaseManager",
    "PaginatedResponse",
    "PaginationParams",
    "Reservation",
    "ReservationRepository",
    "ReservationStatusEnum",
    "get_db_manager",
    "reset_db_manager",
]
