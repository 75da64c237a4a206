"""Tests for LendingManager."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from labstock.utils import utcnow
from labstock.inventory.catalog import ItemCreate
from labstock.inventory.db.models import BorrowRecord
from labstock.inventory.db.schemas import BorrowStatus
from labstock.inventory.errors import ConflictError, NotFoundError
from labstock.inventory.lending.schemas import (
    BorrowCreate,
    BorrowRecordResponse,
    ReturnRequest,
)


def _due_in(days: int) -> datetime:
    return utcnow() + timedelta(days=days)


def _borrowed_count(db, item_id: int) -> int:
    with db.get_session() as session:
        return session.execute(
            select(func.count()).where(
                BorrowRecord.item_id == item_id,
                BorrowRecord.status == BorrowStatus.BORROWED.value,
            )
        ).scalar()


@pytest.fixture
def borrowed(manager, sample_item, sample_user):
    """Borrow the sample item for the sample user."""
    return manager.borrow(
        BorrowCreate(
            item_id=sample_item.id,
            borrower_id=sample_user.id,
            expected_return_date=_due_in(14),
            notes="For the robotics club",
        )
    )


class TestBorrow:
    """Tests for borrowing items."""

    def test_borrow_creates_record(self, manager, sample_item, sample_user):
        """Test borrowing creates an open record."""
        due = _due_in(7)
        before = utcnow()
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=due,
                notes="Lab session",
            )
        )

        assert record.id is not None
        assert record.item_id == sample_item.id
        assert record.borrower_id == sample_user.id
        assert record.status == BorrowStatus.BORROWED.value
        assert record.actual_return_date is None
        assert record.expected_return_date == due
        assert record.notes == "Lab session"
        assert record.borrowed_date >= before
        assert record.created_at is not None

    def test_borrow_links_item(self, manager, db, sample_item, sample_user, borrowed):
        """Test borrowing sets the item's current borrower."""
        item = db.get_item(sample_item.id)
        assert item.current_user_id == sample_user.id
        assert not item.is_available
        assert item.updated_at >= sample_item.updated_at

    def test_borrow_creates_exactly_one_record(self, manager, db, sample_item, borrowed):
        """Test a borrow adds a single record."""
        history = manager.list_history(sample_item.id)
        assert len(history) == 1
        assert _borrowed_count(db, sample_item.id) == 1

    def test_borrow_notes_default_none(self, manager, sample_item, sample_user):
        """Test notes are null when not given."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(3),
            )
        )
        assert record.notes is None

    def test_borrow_does_not_change_quantity(self, manager, db, catalog, sample_user):
        """Test quantity is stock information only."""
        item = catalog.create_item(
            ItemCreate(
                name="Safety Goggles",
                asset_code="PPE-0001",
                storage_location="Shelf 1",
                quantity=12,
            )
        )
        manager.borrow(
            BorrowCreate(item_id=item.id, borrower_id=sample_user.id, expected_return_date=_due_in(1))
        )

        assert db.get_item(item.id).quantity == 12

    def test_borrow_accepts_plain_date(self, manager, sample_item, sample_user):
        """Test a date due date is midnight UTC."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=date(2099, 12, 31),
            )
        )
        assert record.expected_return_date == datetime(2099, 12, 31)

    def test_borrow_normalizes_aware_due_date(self, manager, sample_item, sample_user):
        """Test a timezone-aware due date is stored in UTC."""
        due = datetime(2099, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=7)))
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=due,
            )
        )
        assert record.expected_return_date == datetime(2099, 6, 1, 5, 0)

    def test_borrow_unknown_user(self, manager, db, sample_item):
        """Test borrowing for a missing user."""
        with pytest.raises(NotFoundError) as exc_info:
            manager.borrow(
                BorrowCreate(item_id=sample_item.id, borrower_id=999, expected_return_date=_due_in(1))
            )

        assert exc_info.value.entity == "user"
        assert exc_info.value.entity_id == 999
        assert db.get_item(sample_item.id).current_user_id is None
        assert manager.list_history() == []

    def test_borrow_unknown_item(self, manager, sample_user):
        """Test borrowing a missing item."""
        with pytest.raises(NotFoundError) as exc_info:
            manager.borrow(
                BorrowCreate(item_id=999, borrower_id=sample_user.id, expected_return_date=_due_in(1))
            )

        assert exc_info.value.entity == "item"
        assert manager.list_history() == []

    def test_borrow_checks_user_before_item(self, manager):
        """Test the borrower is validated first when both are missing."""
        with pytest.raises(NotFoundError) as exc_info:
            manager.borrow(
                BorrowCreate(item_id=123, borrower_id=456, expected_return_date=_due_in(1))
            )
        assert exc_info.value.entity == "user"

    def test_borrow_already_borrowed(self, manager, db, sample_item, sample_user, other_user, borrowed):
        """Test borrowing an item that is on loan."""
        item_before = db.get_item(sample_item.id)

        with pytest.raises(ConflictError, match="already borrowed"):
            manager.borrow(
                BorrowCreate(
                    item_id=sample_item.id,
                    borrower_id=other_user.id,
                    expected_return_date=_due_in(5),
                )
            )

        item_after = db.get_item(sample_item.id)
        assert item_after.current_user_id == sample_user.id
        assert item_after.updated_at == item_before.updated_at

        record = manager.get_record(borrowed.id)
        assert record.status == BorrowStatus.BORROWED.value
        assert record.notes == "For the robotics club"
        assert len(manager.list_history(sample_item.id)) == 1

    def test_borrow_same_user_twice(self, manager, sample_item, sample_user, borrowed):
        """Test the current borrower cannot borrow the item again."""
        with pytest.raises(ConflictError):
            manager.borrow(
                BorrowCreate(
                    item_id=sample_item.id,
                    borrower_id=sample_user.id,
                    expected_return_date=_due_in(5),
                )
            )

    def test_borrow_past_due_date_allowed(self, manager, sample_item, sample_user):
        """Test a past due date is accepted and immediately overdue."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(-1),
            )
        )
        assert record.is_overdue
        assert record.status == BorrowStatus.BORROWED.value


class TestReturn:
    """Tests for returning items."""

    def test_return_closes_record(self, manager, borrowed):
        """Test returning sets the return date and status."""
        before = utcnow()
        record = manager.return_item(ReturnRequest(borrowing_id=borrowed.id))

        assert record.id == borrowed.id
        assert record.status == BorrowStatus.RETURNED.value
        assert record.actual_return_date is not None
        assert record.actual_return_date >= before
        assert record.borrowed_date == borrowed.borrowed_date
        assert record.expected_return_date == borrowed.expected_return_date

    def test_return_clears_item_link(self, manager, db, sample_item, borrowed):
        """Test returning makes the item available."""
        linked = db.get_item(sample_item.id)
        manager.return_item(ReturnRequest(borrowing_id=borrowed.id))

        item = db.get_item(sample_item.id)
        assert item.current_user_id is None
        assert item.is_available
        assert item.updated_at >= linked.updated_at

    def test_return_without_notes_preserves_notes(self, manager, borrowed):
        """Test omitting notes keeps the borrow-time notes."""
        record = manager.return_item(ReturnRequest(borrowing_id=borrowed.id))
        assert record.notes == "For the robotics club"

    def test_return_with_notes_replaces_notes(self, manager, borrowed):
        """Test supplied notes overwrite the existing ones."""
        record = manager.return_item(
            ReturnRequest(borrowing_id=borrowed.id, notes="Returned with a cracked case")
        )
        assert record.notes == "Returned with a cracked case"

    def test_return_with_explicit_none_clears_notes(self, manager, borrowed):
        """Test explicitly passing None removes the notes."""
        record = manager.return_item(ReturnRequest(borrowing_id=borrowed.id, notes=None))
        assert record.notes is None

    def test_return_request_tracks_notes_presence(self):
        """Test absent and None notes are distinguished."""
        assert not ReturnRequest(borrowing_id=1).notes_given
        assert ReturnRequest(borrowing_id=1, notes=None).notes_given
        assert ReturnRequest(borrowing_id=1, notes="x").notes_given

    def test_return_unknown_record(self, manager):
        """Test returning a missing record."""
        with pytest.raises(NotFoundError) as exc_info:
            manager.return_item(ReturnRequest(borrowing_id=999))
        assert exc_info.value.entity == "borrow record"
        assert exc_info.value.entity_id == 999

    def test_return_twice(self, manager, db, sample_item, borrowed):
        """Test returning an already-returned record."""
        first = manager.return_item(ReturnRequest(borrowing_id=borrowed.id, notes="ok"))

        with pytest.raises(ConflictError, match="already been returned"):
            manager.return_item(ReturnRequest(borrowing_id=borrowed.id, notes="second"))

        record = manager.get_record(borrowed.id)
        assert record.actual_return_date == first.actual_return_date
        assert record.status == BorrowStatus.RETURNED.value
        assert record.notes == "ok"
        assert db.get_item(sample_item.id).current_user_id is None

    def test_return_old_record_does_not_touch_new_borrow(
        self, manager, db, sample_item, sample_user, other_user, borrowed
    ):
        """Test a stale return cannot release a newer borrow."""
        manager.return_item(ReturnRequest(borrowing_id=borrowed.id))
        manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=other_user.id,
                expected_return_date=_due_in(3),
            )
        )

        with pytest.raises(ConflictError):
            manager.return_item(ReturnRequest(borrowing_id=borrowed.id))

        assert db.get_item(sample_item.id).current_user_id == other_user.id


class TestOverdue:
    """Tests for overdue derivation."""

    def test_past_due_is_overdue(self, manager, sample_item, sample_user):
        """Test an open record past its due date is listed."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(days=1),
            )
        )

        overdue = manager.list_overdue()
        assert [r.id for r in overdue] == [record.id]

    def test_future_due_not_overdue(self, manager, borrowed):
        """Test a record due in the future is not listed."""
        assert manager.list_overdue() == []
        assert not borrowed.is_overdue
        assert borrowed.display_status == BorrowStatus.BORROWED

    def test_returned_not_overdue(self, manager, sample_item, sample_user):
        """Test a returned record is never overdue."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(days=3),
            )
        )
        assert len(manager.list_overdue()) == 1

        returned = manager.return_item(ReturnRequest(borrowing_id=record.id))

        assert manager.list_overdue() == []
        assert not returned.is_overdue
        assert returned.display_status == BorrowStatus.RETURNED

    def test_overdue_status_is_not_stored(self, manager, sample_item, sample_user):
        """Test overdue is a display label only."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(days=2),
            )
        )

        stored = manager.get_record(record.id)
        assert stored.status == BorrowStatus.BORROWED.value
        assert stored.display_status == BorrowStatus.OVERDUE
        assert stored.days_overdue == 2

    def test_overdue_ordered_most_overdue_first(self, manager, multiple_items, sample_user):
        """Test overdue records are sorted by due date."""
        now = utcnow()
        recent = manager.borrow(
            BorrowCreate(
                item_id=multiple_items[0].id,
                borrower_id=sample_user.id,
                expected_return_date=now - timedelta(days=1),
            )
        )
        oldest = manager.borrow(
            BorrowCreate(
                item_id=multiple_items[1].id,
                borrower_id=sample_user.id,
                expected_return_date=now - timedelta(days=10),
            )
        )
        manager.borrow(
            BorrowCreate(
                item_id=multiple_items[2].id,
                borrower_id=sample_user.id,
                expected_return_date=now + timedelta(days=10),
            )
        )

        assert [r.id for r in manager.list_overdue()] == [oldest.id, recent.id]

    def test_response_schema_carries_both_statuses(self, manager, sample_item, sample_user):
        """Test the response keeps stored and display status apart."""
        record = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(days=1),
            )
        )

        response = BorrowRecordResponse.model_validate(record)
        assert response.status == BorrowStatus.BORROWED
        assert response.display_status == BorrowStatus.OVERDUE
        assert response.is_overdue is True

    def test_overdue_report(self, manager, sample_item, sample_user):
        """Test the overdue report joins item and borrower details."""
        manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(days=4),
            )
        )

        report = manager.get_overdue_report()
        assert report.total_overdue == 1
        assert report.oldest_overdue_days == 4
        summary = report.records[0]
        assert summary.item_name == "Digital Multimeter"
        assert summary.asset_code == "LAB-0001"
        assert summary.borrower_username == "jdoe"

    def test_overdue_report_just_past_due(self, manager, sample_item, sample_user):
        """Test a record due seconds ago counts in the oldest-days figure."""
        manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=utcnow() - timedelta(seconds=5),
            )
        )

        report = manager.get_overdue_report()
        assert report.total_overdue == 1
        assert report.oldest_overdue_days == 1
        assert report.records[0].days_overdue == 1

    def test_overdue_report_empty(self, manager):
        """Test the report with nothing overdue."""
        report = manager.get_overdue_report()
        assert report.records == []
        assert report.total_overdue == 0
        assert report.oldest_overdue_days == 0


class TestHistory:
    """Tests for borrowing history."""

    def test_history_newest_first(self, manager, sample_item, sample_user, other_user):
        """Test records are ordered newest-created first."""
        first = manager.borrow(
            BorrowCreate(item_id=sample_item.id, borrower_id=sample_user.id, expected_return_date=_due_in(1))
        )
        manager.return_item(ReturnRequest(borrowing_id=first.id))
        second = manager.borrow(
            BorrowCreate(item_id=sample_item.id, borrower_id=other_user.id, expected_return_date=_due_in(2))
        )

        history = manager.list_history(sample_item.id)
        assert [r.id for r in history] == [second.id, first.id]

    def test_history_includes_open_and_returned(self, manager, sample_item, sample_user):
        """Test history is not filtered by status."""
        first = manager.borrow(
            BorrowCreate(item_id=sample_item.id, borrower_id=sample_user.id, expected_return_date=_due_in(1))
        )
        manager.return_item(ReturnRequest(borrowing_id=first.id))
        manager.borrow(
            BorrowCreate(item_id=sample_item.id, borrower_id=sample_user.id, expected_return_date=_due_in(1))
        )

        statuses = {r.status for r in manager.list_history()}
        assert statuses == {BorrowStatus.BORROWED.value, BorrowStatus.RETURNED.value}

    def test_history_filter_by_item(self, manager, multiple_items, sample_user):
        """Test filtering history to one item."""
        for item in multiple_items[:3]:
            manager.borrow(
                BorrowCreate(item_id=item.id, borrower_id=sample_user.id, expected_return_date=_due_in(1))
            )

        assert len(manager.list_history()) == 3
        history = manager.list_history(multiple_items[1].id)
        assert len(history) == 1
        assert history[0].item_id == multiple_items[1].id

    def test_history_unknown_item(self, manager, borrowed):
        """Test history for an unknown item is empty."""
        assert manager.list_history(999) == []

    def test_get_record_not_found(self, manager):
        """Test getting a missing record."""
        assert manager.get_record(999) is None


class TestDueSoonAndStats:
    """Tests for due-soon listing and statistics."""

    def test_due_soon(self, manager, multiple_items, sample_user):
        """Test only open records inside the window are listed."""
        soon = manager.borrow(
            BorrowCreate(
                item_id=multiple_items[0].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(2),
            )
        )
        manager.borrow(
            BorrowCreate(
                item_id=multiple_items[1].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(30),
            )
        )
        manager.borrow(
            BorrowCreate(
                item_id=multiple_items[2].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(-2),
            )
        )

        assert [r.id for r in manager.list_due_soon(days=7)] == [soon.id]

    def test_stats(self, manager, multiple_items, sample_user):
        """Test lending statistics."""
        first = manager.borrow(
            BorrowCreate(
                item_id=multiple_items[0].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(2),
            )
        )
        manager.return_item(ReturnRequest(borrowing_id=first.id))
        manager.borrow(
            BorrowCreate(
                item_id=multiple_items[1].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(-1),
            )
        )
        manager.borrow(
            BorrowCreate(
                item_id=multiple_items[2].id,
                borrower_id=sample_user.id,
                expected_return_date=_due_in(5),
            )
        )

        stats = manager.get_stats()
        assert stats.total_records == 3
        assert stats.active == 2
        assert stats.returned == 1
        assert stats.overdue == 1
        assert stats.total_items == 4
        assert stats.items_on_loan == 2
        assert stats.items_available == 2


class TestLifecycle:
    """End-to-end borrowing scenarios."""

    def test_borrow_conflict_return_reborrow(self, manager, db, sample_item, sample_user, other_user):
        """Test the full borrow / conflict / return / re-borrow cycle."""
        first = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=sample_user.id,
                expected_return_date=date(2099, 12, 31),
            )
        )
        assert first.status == BorrowStatus.BORROWED.value
        assert db.get_item(sample_item.id).current_user_id == sample_user.id

        with pytest.raises(ConflictError):
            manager.borrow(
                BorrowCreate(
                    item_id=sample_item.id,
                    borrower_id=other_user.id,
                    expected_return_date=date(2099, 1, 15),
                )
            )

        returned = manager.return_item(ReturnRequest(borrowing_id=first.id))
        assert returned.status == BorrowStatus.RETURNED.value
        assert db.get_item(sample_item.id).current_user_id is None

        second = manager.borrow(
            BorrowCreate(
                item_id=sample_item.id,
                borrower_id=other_user.id,
                expected_return_date=date(2099, 1, 15),
            )
        )
        assert second.id != first.id
        assert second.borrower_id == other_user.id
        assert db.get_item(sample_item.id).current_user_id == other_user.id

        history = manager.list_history(sample_item.id)
        assert [r.id for r in history] == [second.id, first.id]
        assert manager.get_record(first.id).status == BorrowStatus.RETURNED.value

    def test_at_most_one_active_borrow_per_item(self, manager, db, multiple_items, sample_user, other_user):
        """Test the single-active-borrow invariant over a mixed sequence."""
        users = [sample_user, other_user]
        open_records = {}

        for step in range(12):
            item = multiple_items[step % 3]
            user = users[step % 2]
            if item.id in open_records and step % 4 == 0:
                manager.return_item(ReturnRequest(borrowing_id=open_records.pop(item.id)))
                continue
            try:
                record = manager.borrow(
                    BorrowCreate(item_id=item.id, borrower_id=user.id, expected_return_date=_due_in(1))
                )
                open_records[item.id] = record.id
            except ConflictError:
                assert item.id in open_records

        for item in multiple_items:
            active = _borrowed_count(db, item.id)
            linked = db.get_item(item.id).current_user_id
            assert active <= 1
            assert (active == 1) == (linked is not None)
