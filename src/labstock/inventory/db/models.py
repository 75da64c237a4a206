"""SQLAlchemy ORM models for the inventory database.

Tables:
- users: People who may borrow items
- items: Physical assets in the catalog
- borrow_records: One row per lending episode (permanent audit trail)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ...utils import days_between, utcnow
from .schemas import BorrowStatus, ItemCondition, UserRole


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """User model - a person who may borrow items."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.USER.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="chk_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class Item(Base):
    """Item model - a physical asset and its current borrower link."""

    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    asset_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    condition: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ItemCondition.GOOD.value, index=True
    )
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Set only by borrow/return; NULL means the item is available
    current_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    current_user: Mapped[Optional["User"]] = relationship("User")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_item_quantity"),
        CheckConstraint(
            "condition IN ('excellent', 'good', 'fair', 'poor', 'damaged')",
            name="chk_item_condition",
        ),
    )

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, asset_code='{self.asset_code}', current_user_id={self.current_user_id})>"

    @property
    def is_available(self) -> bool:
        """Check if the item is not on loan."""
        return self.current_user_id is None


class BorrowRecord(Base):
    """BorrowRecord model - one lending episode of an item."""

    __tablename__ = "borrow_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    borrower_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Dates
    borrowed_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    expected_return_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    actual_return_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BorrowStatus.BORROWED.value, index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    item: Mapped["Item"] = relationship("Item")
    borrower: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint("status IN ('borrowed', 'returned')", name="chk_borrow_status"),
    )

    def __repr__(self) -> str:
        return f"<BorrowRecord(id={self.id}, item_id={self.item_id}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        """Check if the item has not been returned yet."""
        return self.actual_return_date is None

    @property
    def is_overdue(self) -> bool:
        """Check if the record is open and past its expected return date."""
        return self.is_active and self.expected_return_date < utcnow()

    @property
    def days_overdue(self) -> int:
        """Days overdue (0 if not overdue, at least 1 once past due)."""
        if not self.is_overdue:
            return 0
        return max(1, days_between(self.expected_return_date))

    @property
    def display_status(self) -> BorrowStatus:
        """Status label for display, with OVERDUE derived from the dates."""
        if self.is_overdue:
            return BorrowStatus.OVERDUE
        return BorrowStatus(self.status)
