"""Catalog manager for item records."""

from typing import Optional

from loguru import logger
from sqlalchemy import func, or_, select

from ...utils import to_utc_naive, utcnow
from ..db.models import Item
from ..db.sqlite import Database, get_db
from ..errors import ConflictError
from .schemas import ItemCreate, ItemSearch, ItemUpdate


class CatalogManager:
    """Manages the item catalog."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize catalog manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Item CRUD
    # -------------------------------------------------------------------------

    def create_item(self, data: ItemCreate) -> Item:
        """Create a new item.

        Args:
            data: Item creation data

        Returns:
            Created item

        Raises:
            ConflictError: If the asset code is already in use
        """
        with self.db.get_session() as session:
            if self._asset_code_taken(session, data.asset_code):
                raise ConflictError(f"Asset code '{data.asset_code}' already exists")

            item = Item(
                name=data.name,
                asset_code=data.asset_code,
                description=data.description,
                purchase_date=to_utc_naive(data.purchase_date) if data.purchase_date else None,
                condition=data.condition.value,
                storage_location=data.storage_location,
                quantity=data.quantity,
                current_user_id=None,
            )
            session.add(item)
            session.flush()
            session.refresh(item)
            session.expunge(item)

        logger.info("Created item {} ({})", item.id, item.asset_code)
        return item

    def get_item(self, item_id: int) -> Optional[Item]:
        """Get an item by ID.

        Args:
            item_id: Item ID

        Returns:
            Item or None
        """
        return self.db.get_item(item_id)

    def get_item_by_asset_code(self, asset_code: str) -> Optional[Item]:
        """Get an item by its asset code."""
        with self.db.get_session() as session:
            stmt = select(Item).where(Item.asset_code == asset_code.strip())
            item = session.execute(stmt).scalar_one_or_none()
            if item:
                session.expunge(item)
            return item

    def list_items(self) -> list[Item]:
        """List all items, sorted by name."""
        return self.search_items(ItemSearch())

    def search_items(self, filters: ItemSearch) -> list[Item]:
        """Search the catalog.

        Args:
            filters: Text query (name or asset code, case insensitive),
                condition, storage location and availability filters

        Returns:
            Matching items sorted by name
        """
        with self.db.get_session() as session:
            stmt = select(Item)

            if filters.query:
                pattern = f"%{filters.query.lower()}%"
                stmt = stmt.where(
                    or_(
                        func.lower(Item.name).like(pattern),
                        func.lower(Item.asset_code).like(pattern),
                    )
                )
            if filters.condition:
                stmt = stmt.where(Item.condition == filters.condition.value)
            if filters.storage_location:
                stmt = stmt.where(Item.storage_location == filters.storage_location)
            if filters.available_only:
                stmt = stmt.where(Item.current_user_id.is_(None))

            stmt = stmt.order_by(Item.name, Item.id)

            items = session.execute(stmt).scalars().all()
            for item in items:
                session.expunge(item)
            logger.debug("Catalog search {} matched {} items", filters.model_dump(), len(items))
            return list(items)

    def update_item(self, item_id: int, data: ItemUpdate) -> Optional[Item]:
        """Update an item's catalog fields.

        The borrower link is not part of the catalog and cannot be changed
        here.

        Args:
            item_id: Item ID
            data: Update data (only set fields are written)

        Returns:
            Updated item or None if not found

        Raises:
            ConflictError: If the new asset code belongs to another item
        """
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if not item:
                return None

            update_data = data.model_dump(exclude_unset=True)

            new_code = update_data.get("asset_code")
            if new_code:
                new_code = new_code.strip()
                update_data["asset_code"] = new_code
                if new_code != item.asset_code and self._asset_code_taken(session, new_code):
                    raise ConflictError(f"Asset code '{new_code}' already exists")

            for field, value in update_data.items():
                if field == "condition":
                    value = value.value
                elif field == "purchase_date" and value:
                    value = to_utc_naive(value)
                setattr(item, field, value)

            item.updated_at = utcnow()
            session.flush()
            session.refresh(item)
            session.expunge(item)

        logger.info("Updated item {} fields {}", item_id, sorted(update_data))
        return item

    def delete_item(self, item_id: int) -> bool:
        """Delete an item.

        Args:
            item_id: Item ID

        Returns:
            True if deleted, False if not found

        Raises:
            ConflictError: If any borrow record references the item
        """
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if not item:
                return False

            if self.db.item_has_history(item_id, session=session):
                logger.warning("Refusing to delete item {}: it has borrowing history", item_id)
                raise ConflictError(f"Item {item_id} has borrowing history and cannot be deleted")

            session.delete(item)

        logger.info("Deleted item {}", item_id)
        return True

    @staticmethod
    def _asset_code_taken(session, asset_code: str) -> bool:
        stmt = select(Item.id).where(Item.asset_code == asset_code)
        return session.execute(stmt).first() is not None
