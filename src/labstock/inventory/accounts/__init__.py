"""User account module.

Provides functionality for:
- Registering users who may borrow items
- Looking users up by ID or username
"""

from .manager import AccountManager
from .schemas import UserCreate, UserResponse

__all__ = [
    "AccountManager",
    "UserCreate",
    "UserResponse",
]
