"""SQLite database operations.

Handles database connection, session management, entity lookups and the
atomic item linkage updates used by the lending manager.
"""

import os
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional

from loguru import logger
from sqlalchemy import create_engine, event, select, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ...utils import utcnow
from .models import Base, BorrowRecord, Item, User
from .schemas import BorrowStatus

DEFAULT_DB_PATH = Path.home() / ".labstock" / "inventory.db"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 30.0):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     LABSTOCK_DB_PATH env var or default location.
            timeout: Seconds a writer waits on a locked database
        """
        if db_path is None:
            db_path = os.environ.get("LABSTOCK_DB_PATH", str(DEFAULT_DB_PATH))

        self.db_path = Path(db_path).expanduser()
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database.
        # One connection means one transaction, so sessions take turns.
        self._session_lock = threading.RLock() if self._is_memory else nullcontext()
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False, "timeout": timeout},
            )
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        logger.debug("Database engine created for {}", self.db_path)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        The session is one transaction: committed when the block exits
        normally, rolled back if it raises. On an in-memory database all
        sessions share one connection and are run one at a time.
        """
        with self._session_lock:
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # ========================================================================
    # Lookups
    # ========================================================================

    def get_user(self, user_id: int, session: Optional[Session] = None) -> Optional[User]:
        """Get a user by ID."""
        return self._get(User, user_id, session)

    def get_item(self, item_id: int, session: Optional[Session] = None) -> Optional[Item]:
        """Get an item by ID."""
        return self._get(Item, item_id, session)

    def get_borrow_record(
        self, record_id: int, session: Optional[Session] = None
    ) -> Optional[BorrowRecord]:
        """Get a borrow record by ID."""
        return self._get(BorrowRecord, record_id, session)

    def _get(self, model, entity_id: int, session: Optional[Session]):
        if session:
            return session.get(model, entity_id)
        with self.get_session() as s:
            entity = s.get(model, entity_id)
            if entity:
                s.expunge(entity)
            return entity

    def item_has_history(self, item_id: int, session: Optional[Session] = None) -> bool:
        """Check whether any borrow record references the item."""

        def _check(s: Session) -> bool:
            stmt = select(BorrowRecord.id).where(BorrowRecord.item_id == item_id).limit(1)
            return s.execute(stmt).first() is not None

        if session:
            return _check(session)
        with self.get_session() as s:
            return _check(s)

    # ========================================================================
    # Item Linkage
    # ========================================================================

    def claim_item(self, item_id: int, borrower_id: int, session: Session) -> bool:
        """Link an available item to a borrower.

        Single conditional UPDATE: succeeds only while current_user_id is
        NULL, so of two concurrent claims on one item exactly one wins.

        Returns:
            True if this call linked the item, False if it was already linked
        """
        stmt = (
            update(Item)
            .where(Item.id == item_id, Item.current_user_id.is_(None))
            .values(current_user_id=borrower_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    def release_item(self, item_id: int, session: Session) -> bool:
        """Clear an item's borrower link.

        Returns:
            True if the item row was updated
        """
        stmt = (
            update(Item)
            .where(Item.id == item_id)
            .values(current_user_id=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    def close_borrow_record(
        self,
        record_id: int,
        returned_at: datetime,
        session: Session,
        notes_given: bool = False,
        notes: Optional[str] = None,
    ) -> bool:
        """Mark an open borrow record as returned.

        Conditional on the record still being open, so a record is closed
        at most once.

        Args:
            record_id: Borrow record ID
            returned_at: Return timestamp (naive UTC)
            session: Session of the enclosing transaction
            notes_given: Whether notes should be overwritten
            notes: Replacement notes, used only when notes_given

        Returns:
            True if this call closed the record
        """
        values = {"actual_return_date": returned_at, "status": BorrowStatus.RETURNED.value}
        if notes_given:
            values["notes"] = notes

        stmt = (
            update(BorrowRecord)
            .where(BorrowRecord.id == record_id, BorrowRecord.status == BorrowStatus.BORROWED.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        if db_path is None:
            from ..config import get_config

            config = get_config()
            _db = Database(str(config.db_path), timeout=config.db_timeout)
        else:
            _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    if _db is not None:
        _db.engine.dispose()
    _db = None
