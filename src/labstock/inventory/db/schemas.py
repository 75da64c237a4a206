"""Enumerations shared by the ORM models and the pydantic schemas."""

from enum import Enum


class ItemCondition(str, Enum):
    """Physical condition of an item."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"


class UserRole(str, Enum):
    """Role of a user account."""

    ADMIN = "admin"
    USER = "user"


class BorrowStatus(str, Enum):
    """Status of a borrow record.

    Only BORROWED and RETURNED are ever stored. OVERDUE is a display
    label derived from the expected return date at read time.
    """

    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"
