"""
Catalog models for the Library Lending service.

Only the lending-relevant slice of a book is modelled here: copy counts,
digital reservation slots and the digital lock. Catalog management itself
(titles, covers, classification) lives elsewhere.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CatalogBook(BaseModel):
    """
    Snapshot of a book's lending state.

    The bounds checked here are the same bounds the store enforces, so a
    snapshot that validates is always a legal capacity state.
    """

    id: str = Field(..., description="Unique book identifier", min_length=1, max_length=50)
    title: str = Field(..., description="Book title", min_length=1, max_length=500)
    author: str | None = Field(None, description="Display author")
    isbn: str | None = Field(None, description="ISBN, if catalogued")

    total_copies: int = Field(default=1, ge=0, description="Physical copies owned")
    available_copies: int = Field(default=1, ge=0, description="Physical copies not on hold")

    is_digital: bool = Field(default=False, description="Lent as a digital file")
    is_electronic: bool = Field(default=False, description="Electronic edition available")
    digital_file: str | None = Field(None, description="Storage reference of the digital file")
    is_locked: bool = Field(default=True, description="Digital file locked for reading")
    max_reservations: int = Field(default=1, ge=0, description="Concurrent digital slots")
    current_reservations: int = Field(default=0, ge=0, description="Digital slots in use")

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_capacity(self) -> "CatalogBook":
        """Counters must stay inside their bounds."""
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        if self.current_reservations > self.max_reservations:
            raise ValueError("Current reservations cannot exceed maximum reservations")
        return self

    @property
    def has_digital_content(self) -> bool:
        return self.is_digital or self.is_electronic

    @property
    def is_digital_lendable(self) -> bool:
        """A digital book can be lent once it has a file and at least one slot."""
        return self.is_digital and bool(self.digital_file) and self.max_reservations > 0

    @property
    def free_digital_slots(self) -> int:
        return self.max_reservations - self.current_reservations

    model_config = ConfigDict(
        from_attributes=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "book_digital_001",
                "title": "Things Fall Apart",
                "author": "Chinua Achebe",
                "total_copies": 0,
                "available_copies": 0,
                "is_digital": True,
                "digital_file": "ebooks/things-fall-apart.pdf",
                "is_locked": True,
                "max_reservations": 1,
                "current_reservations": 0,
            }
        },
    )


class BookAvailability(BaseModel):
    """Capacity summary for a single book."""

    book_id: str
    title: str
    is_digital: bool
    is_locked: bool
    total_copies: int
    available_copies: int
    max_reservations: int
    current_reservations: int
    can_reserve: bool

    @classmethod
    def from_book(cls, book: CatalogBook) -> "BookAvailability":
        if book.is_digital:
            can_reserve = book.is_digital_lendable and book.free_digital_slots > 0
        else:
            can_reserve = book.available_copies > 0
        return cls(
            book_id=book.id,
            title=book.title,
            is_digital=book.is_digital,
            is_locked=book.is_locked,
            total_copies=book.total_copies,
            available_copies=book.available_copies,
            max_reservations=book.max_reservations,
            current_reservations=book.current_reservations,
            can_reserve=can_reserve,
        )
