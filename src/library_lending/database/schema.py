"""
SQLAlchemy database schema for the Library Lending service.

Two tables back the lending lifecycle:

1. ``books`` - the catalog slice the lifecycle touches: copy counts, digital
   reservation slots and the digital lock. The capacity counters are
   denormalized aggregates of the reservations that currently consume them.
2. ``book_reservations`` - the reservation ledger. Rows are never deleted in
   normal operation; terminal rows stay in ``RETURNED`` or ``CANCELLED``.

Store-level guarantees:
- CHECK constraints keep both capacity counters inside their bounds.
- ``books.version_id`` is SQLAlchemy's version counter. Every flush of a book
  row is conditional on the version read, so two transactions that both
  read the same capacity cannot both write it. Reservations carry the same
  counter for their status writes.
- A partial unique index allows at most one active reservation per
  (user, book) pair.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

Base = declarative_base()


class ReservationStatusEnum(str, enum.Enum):
    """Database enum for reservation status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CHECKED_OUT = "CHECKED_OUT"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUS_SQL = "status IN ('PENDING', 'APPROVED', 'CHECKED_OUT')"


class Book(Base):
    """
    Books table - the lending-relevant slice of the catalog.

    Capacity fields are written only through ``CatalogRepository``.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(200), nullable=True)
    isbn = Column(String(20), nullable=True)

    # Physical copies
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    # Digital lending
    is_digital = Column(Boolean, nullable=False, default=False)
    is_electronic = Column(Boolean, nullable=False, default=False)
    digital_file = Column(String(500), nullable=True)
    is_locked = Column(Boolean, nullable=False, default=True)
    max_reservations = Column(Integer, nullable=False, default=1)
    current_reservations = Column(Integer, nullable=False, default=0)

    # Optimistic concurrency key
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="book")

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_digital", "is_digital"),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("max_reservations >= 0", name="check_max_reservations_non_negative"),
        CheckConstraint(
            "current_reservations >= 0", name="check_current_reservations_non_negative"
        ),
        CheckConstraint(
            "current_reservations <= max_reservations",
            name="check_current_not_exceed_max_reservations",
        ),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def has_digital_content(self) -> bool:
        """Digital or electronic books are served through the Access Gate."""
        return bool(self.is_digital or self.is_electronic)


class Reservation(Base):
    """
    Reservation ledger table.

    ``user_id`` and ``book_id`` are fixed at creation. Status changes are
    applied only by the lending state machine.
    """

    __tablename__ = "book_reservations"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), nullable=False)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    status = Column(
        Enum(ReservationStatusEnum), nullable=False, default=ReservationStatusEnum.PENDING
    )
    reserved_at = Column(DateTime, nullable=False)
    approved_by = Column(String(50), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    renewal_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # Concurrent transitions on the same reservation conflict at flush
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="reservations")

    __table_args__ = (
        Index("idx_reservation_user", "user_id"),
        Index("idx_reservation_book", "book_id"),
        Index("idx_reservation_status", "status"),
        Index(
            "uq_reservation_active_user_book",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
        CheckConstraint("id LIKE 'reservation_%'", name="check_reservation_id_format"),
        CheckConstraint("renewal_count >= 0", name="check_renewal_count_non_negative"),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @validates("user_id", "book_id")
    def validate_immutable_reference(self, key, value):
        """References are write-once."""
        current = getattr(self, key)
        if current is not None and current != value:
            raise ValueError(f"Reservation {key} cannot be changed after creation")
        return value
