"""Item lending module.

Provides functionality for:
- Borrowing available items
- Returning borrowed items
- Overdue tracking (derived from due dates at read time)
- Borrowing history
"""

from .manager import LendingManager
from .schemas import (
    BorrowCreate,
    BorrowRecordResponse,
    LendingStats,
    OverdueReport,
    OverdueSummary,
    ReturnRequest,
)

__all__ = [
    "LendingManager",
    "BorrowCreate",
    "BorrowRecordResponse",
    "LendingStats",
    "OverdueReport",
    "OverdueSummary",
    "ReturnRequest",
]
