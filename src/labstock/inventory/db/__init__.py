"""Database module for local SQLite storage."""

from .models import BorrowRecord, Item, User
from .schemas import BorrowStatus, ItemCondition, UserRole
from .sqlite import Database, get_db, reset_db

__all__ = [
    "BorrowRecord",
    "Item",
    "User",
    "BorrowStatus",
    "ItemCondition",
    "UserRole",
    "Database",
    "get_db",
    "reset_db",
]
