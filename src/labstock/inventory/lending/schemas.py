"""Pydantic schemas for borrowing and returning items."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...utils import to_utc_naive
from ..db.schemas import BorrowStatus


class BorrowCreate(BaseModel):
    """Schema for borrowing an item."""

    item_id: int
    borrower_id: int
    expected_return_date: datetime
    notes: Optional[str] = None

    @field_validator("expected_return_date", mode="before")
    @classmethod
    def accept_plain_date(cls, v):
        """A plain date means midnight UTC of that day."""
        if isinstance(v, date) and not isinstance(v, datetime):
            return to_utc_naive(v)
        return v

    @field_validator("expected_return_date")
    @classmethod
    def normalize_due(cls, v: datetime) -> datetime:
        """Store due dates as naive UTC."""
        return to_utc_naive(v)


class ReturnRequest(BaseModel):
    """Schema for returning an item.

    Leaving ``notes`` out keeps the record's existing notes. Passing it,
    even as None, replaces them.
    """

    borrowing_id: int
    notes: Optional[str] = None

    @property
    def notes_given(self) -> bool:
        """Check if the caller supplied the notes field."""
        return "notes" in self.model_fields_set


class BorrowRecordResponse(BaseModel):
    """Schema for borrow record responses."""

    id: int
    item_id: int
    borrower_id: int
    borrowed_date: datetime
    expected_return_date: datetime
    actual_return_date: Optional[datetime]
    status: BorrowStatus
    display_status: BorrowStatus
    is_overdue: bool
    days_overdue: int
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class OverdueSummary(BaseModel):
    """Summary of an overdue record for reports."""

    id: int
    item_id: int
    item_name: str
    asset_code: str
    borrower_id: int
    borrower_username: str
    expected_return_date: datetime
    days_overdue: int


class OverdueReport(BaseModel):
    """Report of overdue records."""

    records: list[OverdueSummary]
    total_overdue: int
    oldest_overdue_days: int


class LendingStats(BaseModel):
    """Overall lending statistics."""

    total_records: int
    active: int
    returned: int
    overdue: int
    items_on_loan: int
    items_available: int
    total_items: int
