"""Item catalog module.

Provides functionality for:
- Creating, updating and deleting items
- Looking items up by ID or asset code
- Searching by text, condition, location and availability
"""

from .manager import CatalogManager
from .schemas import ItemCreate, ItemResponse, ItemSearch, ItemUpdate

__all__ = [
    "CatalogManager",
    "ItemCreate",
    "ItemResponse",
    "ItemSearch",
    "ItemUpdate",
]
