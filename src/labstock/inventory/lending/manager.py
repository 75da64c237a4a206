"""Lending manager for borrow and return operations."""

from datetime import timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import func, select

from ...utils import utcnow
from ..db.models import BorrowRecord, Item, User
from ..db.schemas import BorrowStatus
from ..db.sqlite import Database, get_db
from ..errors import ConflictError, NotFoundError
from .schemas import (
    BorrowCreate,
    LendingStats,
    OverdueReport,
    OverdueSummary,
    ReturnRequest,
)


class LendingManager:
    """Manages the borrowing lifecycle of items.

    Each borrow or return runs in a single session, so a failed check
    leaves neither the item nor the borrow record changed.
    """

    def __init__(self, db: Optional[Database] = None):
        """Initialize lending manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Borrow / Return
    # -------------------------------------------------------------------------

    def borrow(self, data: BorrowCreate) -> BorrowRecord:
        """Lend an available item to a user.

        Args:
            data: Item, borrower, expected return date and optional notes

        Returns:
            The new borrow record

        Raises:
            NotFoundError: If the borrower or the item does not exist
            ConflictError: If the item is already borrowed
        """
        with self.db.get_session() as session:
            if not self.db.get_user(data.borrower_id, session=session):
                logger.warning("Borrow rejected: user {} not found", data.borrower_id)
                raise NotFoundError("user", data.borrower_id)

            item = self.db.get_item(data.item_id, session=session)
            if not item:
                logger.warning("Borrow rejected: item {} not found", data.item_id)
                raise NotFoundError("item", data.item_id)

            if item.current_user_id is not None:
                logger.warning(
                    "Borrow rejected: item {} is already borrowed by user {}",
                    data.item_id,
                    item.current_user_id,
                )
                raise ConflictError(f"Item {data.item_id} is already borrowed")

            # A concurrent borrow may have linked the item since the read above
            if not self.db.claim_item(data.item_id, data.borrower_id, session=session):
                logger.warning("Borrow rejected: item {} was claimed concurrently", data.item_id)
                raise ConflictError(f"Item {data.item_id} is already borrowed")

            now = utcnow()
            record = BorrowRecord(
                item_id=data.item_id,
                borrower_id=data.borrower_id,
                borrowed_date=now,
                expected_return_date=data.expected_return_date,
                actual_return_date=None,
                status=BorrowStatus.BORROWED.value,
                notes=data.notes,
                created_at=now,
            )
            session.add(record)
            session.flush()
            session.refresh(record)
            session.expunge(record)

        logger.info(
            "Item {} borrowed by user {} (record {}, due {})",
            record.item_id,
            record.borrower_id,
            record.id,
            record.expected_return_date.isoformat(),
        )
        return record

    def return_item(self, data: ReturnRequest) -> BorrowRecord:
        """Close a borrow record and make its item available again.

        Notes are replaced only when the request sets them; otherwise the
        notes written at borrow time are kept.

        Args:
            data: Borrow record ID and optional notes

        Returns:
            The updated borrow record

        Raises:
            NotFoundError: If the borrow record does not exist
            ConflictError: If the record has already been returned
        """
        with self.db.get_session() as session:
            record = self.db.get_borrow_record(data.borrowing_id, session=session)
            if not record:
                logger.warning("Return rejected: borrow record {} not found", data.borrowing_id)
                raise NotFoundError("borrow record", data.borrowing_id)

            if record.status == BorrowStatus.RETURNED.value:
                logger.warning("Return rejected: borrow record {} already returned", record.id)
                raise ConflictError(f"Borrow record {record.id} has already been returned")

            closed = self.db.close_borrow_record(
                record.id,
                utcnow(),
                session=session,
                notes_given=data.notes_given,
                notes=data.notes,
            )
            if not closed:
                logger.warning("Return rejected: borrow record {} closed concurrently", record.id)
                raise ConflictError(f"Borrow record {record.id} has already been returned")

            self.db.release_item(record.item_id, session=session)

            session.refresh(record)
            session.expunge(record)

        logger.info(
            "Item {} returned by user {} (record {})",
            record.item_id,
            record.borrower_id,
            record.id,
        )
        return record

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_record(self, borrowing_id: int) -> Optional[BorrowRecord]:
        """Get a borrow record by ID.

        Args:
            borrowing_id: Borrow record ID

        Returns:
            BorrowRecord or None
        """
        return self.db.get_borrow_record(borrowing_id)

    def list_history(self, item_id: Optional[int] = None) -> list[BorrowRecord]:
        """List borrow records, newest first.

        Both open and returned records are included.

        Args:
            item_id: Only records for this item

        Returns:
            List of borrow records
        """
        with self.db.get_session() as session:
            stmt = select(BorrowRecord)
            if item_id is not None:
                stmt = stmt.where(BorrowRecord.item_id == item_id)
            stmt = stmt.order_by(BorrowRecord.created_at.desc(), BorrowRecord.id.desc())

            records = session.execute(stmt).scalars().all()
            for record in records:
                session.expunge(record)
            logger.debug("History for item {}: {} records", item_id, len(records))
            return list(records)

    def list_overdue(self) -> list[BorrowRecord]:
        """List open records whose expected return date has passed.

        Overdue is evaluated against the current time on every call; the
        stored status of these records stays 'borrowed'.

        Returns:
            Overdue records, most overdue first
        """
        with self.db.get_session() as session:
            stmt = (
                select(BorrowRecord)
                .where(
                    BorrowRecord.actual_return_date.is_(None),
                    BorrowRecord.expected_return_date < utcnow(),
                )
                .order_by(BorrowRecord.expected_return_date, BorrowRecord.id)
            )
            records = session.execute(stmt).scalars().all()
            for record in records:
                session.expunge(record)
            logger.debug("{} overdue records", len(records))
            return list(records)

    def list_due_soon(self, days: Optional[int] = None) -> list[BorrowRecord]:
        """List open records due within the next few days.

        Args:
            days: Number of days to look ahead (default from config)

        Returns:
            Records due soon, soonest first
        """
        if days is None:
            from ..config import get_config

            days = get_config().due_soon_days

        with self.db.get_session() as session:
            now = utcnow()
            stmt = (
                select(BorrowRecord)
                .where(
                    BorrowRecord.actual_return_date.is_(None),
                    BorrowRecord.expected_return_date >= now,
                    BorrowRecord.expected_return_date <= now + timedelta(days=days),
                )
                .order_by(BorrowRecord.expected_return_date, BorrowRecord.id)
            )
            records = session.execute(stmt).scalars().all()
            for record in records:
                session.expunge(record)
            return list(records)

    # -------------------------------------------------------------------------
    # Statistics and Reports
    # -------------------------------------------------------------------------

    def get_overdue_report(self) -> OverdueReport:
        """Get report of overdue records with item and borrower details.

        Returns:
            OverdueReport with overdue records
        """
        with self.db.get_session() as session:
            stmt = (
                select(BorrowRecord, Item.name, Item.asset_code, User.username)
                .join(Item, BorrowRecord.item_id == Item.id)
                .join(User, BorrowRecord.borrower_id == User.id)
                .where(
                    BorrowRecord.actual_return_date.is_(None),
                    BorrowRecord.expected_return_date < utcnow(),
                )
                .order_by(BorrowRecord.expected_return_date, BorrowRecord.id)
            )
            rows = session.execute(stmt).all()

            summaries = [
                OverdueSummary(
                    id=record.id,
                    item_id=record.item_id,
                    item_name=item_name,
                    asset_code=asset_code,
                    borrower_id=record.borrower_id,
                    borrower_username=username,
                    expected_return_date=record.expected_return_date,
                    days_overdue=record.days_overdue,
                )
                for record, item_name, asset_code, username in rows
            ]

        return OverdueReport(
            records=summaries,
            total_overdue=len(summaries),
            oldest_overdue_days=max((s.days_overdue for s in summaries), default=0),
        )

    def get_stats(self) -> LendingStats:
        """Get overall lending statistics.

        Returns:
            LendingStats with counts
        """
        with self.db.get_session() as session:
            now = utcnow()

            total_records = session.execute(
                select(func.count()).select_from(BorrowRecord)
            ).scalar() or 0

            active = session.execute(
                select(func.count()).where(BorrowRecord.status == BorrowStatus.BORROWED.value)
            ).scalar() or 0

            overdue = session.execute(
                select(func.count()).where(
                    BorrowRecord.actual_return_date.is_(None),
                    BorrowRecord.expected_return_date < now,
                )
            ).scalar() or 0

            total_items = session.execute(
                select(func.count()).select_from(Item)
            ).scalar() or 0

            items_on_loan = session.execute(
                select(func.count()).where(Item.current_user_id.isnot(None))
            ).scalar() or 0

        return LendingStats(
            total_records=total_records,
            active=active,
            returned=total_records - active,
            overdue=overdue,
            items_on_loan=items_on_loan,
            items_available=total_items - items_on_loan,
            total_items=total_items,
        )
