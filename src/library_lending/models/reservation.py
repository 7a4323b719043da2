"""
Reservation models for the Library Lending service.

A reservation moves through a small lifecycle:

    PENDING -> APPROVED -> CHECKED_OUT -> RETURNED
    PENDING -> CANCELLED

These models are read-only snapshots handed back to callers. Status changes
happen only in the lending state machine, never by assigning to a snapshot.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReservationStatus(str, Enum):
    """Status of a reservation."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CHECKED_OUT = "CHECKED_OUT"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


# At most one reservation per (user, book) may sit in these states; they are
# also the states that hold a copy or a digital slot.
ACTIVE_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.APPROVED, ReservationStatus.CHECKED_OUT}
)

# States in which the reader may open the digital file.
ACCESS_STATUSES = frozenset({ReservationStatus.APPROVED, ReservationStatus.CHECKED_OUT})

TERMINAL_STATUSES = frozenset({ReservationStatus.RETURNED, ReservationStatus.CANCELLED})


class Reservation(BaseModel):
    """
    Snapshot of a reservation ledger entry.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the reservation",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
        examples=["reservation_3f9a1c0b2d4e"],
    )

    user_id: str = Field(
        ...,
        description="ID of the user who requested the reservation",
        min_length=1,
    )

    book_id: str = Field(
        ...,
        description="ID of the reserved book",
        min_length=1,
    )

    status: ReservationStatus = Field(
        default=ReservationStatus.PENDING,
        description="Current lifecycle status",
    )

    reserved_at: datetime = Field(
        ...,
        description="When the reservation was requested",
    )

    approved_by: str | None = Field(None, description="Staff member who approved it")
    approved_at: datetime | None = Field(None, description="When it was approved")
    due_date: datetime | None = Field(None, description="End of the loan window")
    returned_at: datetime | None = Field(None, description="When it was returned")

    renewal_count: int = Field(
        default=0,
        description="Number of times the loan window has been renewed",
        ge=0,
    )

    notes: str | None = Field(
        None,
        description="Free-text notes from the member or staff",
        max_length=1000,
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "Reservation":
        """Validate date relationships."""
        if self.approved_at and self.approved_at < self.reserved_at:
            raise ValueError("Approval cannot precede the reservation request")

        if self.returned_at and self.returned_at < self.reserved_at:
            raise ValueError("Return cannot precede the reservation request")

        return self

    @property
    def is_active(self) -> bool:
        """Whether this reservation still holds capacity."""
        return self.status in ACTIVE_STATUSES

    def is_expired(self, now: datetime) -> bool:
        """Whether the loan window has lapsed at ``now``."""
        return self.due_date is not None and now > self.due_date

    model_config = ConfigDict(
        from_attributes=True,
        frozen=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "reservation_3f9a1c0b2d4e",
                "user_id": "user_42",
                "book_id": "book_digital_001",
                "status": "APPROVED",
                "reserved_at": "2024-03-01T10:30:00",
                "approved_by": "staff_7",
                "approved_at": "2024-03-01T12:00:00",
                "due_date": "2024-03-15T12:00:00",
                "renewal_count": 0,
            }
        },
    )
