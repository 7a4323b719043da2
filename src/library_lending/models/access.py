"""Result of a successful Access Gate check."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .reservation import ReservationStatus


class AccessGrant(BaseModel):
    """
    Capability descriptor for one read or download of a digital file.

    A grant is valid only for the request that produced it; every later access
    goes through the gate again.
    """

    reservation_id: str
    user_id: str
    book_id: str
    book_title: str
    book_author: str | None = None
    status: ReservationStatus
    file_reference: str = Field(..., description="Resolved path or URL of the digital file")
    approved_at: datetime | None = None
    due_date: datetime | None = Field(None, description="Access expires after this instant")
    checked_at: datetime = Field(..., description="The instant the check was made for")

    model_config = ConfigDict(frozen=True)
