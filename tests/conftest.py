"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the labstock application,
including test databases and sample users and items.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from loguru import logger

from labstock.inventory.accounts import AccountManager, UserCreate
from labstock.inventory.catalog import CatalogManager, ItemCreate
from labstock.inventory.config import reset_config
from labstock.inventory.db.models import Item, User
from labstock.inventory.db.schemas import ItemCondition, UserRole
from labstock.inventory.db.sqlite import Database, reset_db
from labstock.inventory.lending import LendingManager


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture(scope="function")
def file_db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a file-backed database (needed for multi-threaded tests)."""
    reset_db()
    reset_config()

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    database.engine.dispose()
    reset_db()


@pytest.fixture(autouse=True)
def quiet_logs():
    """Keep loguru output out of test runs."""
    logger.remove()
    yield
    logger.remove()


# ============================================================================
# Manager Fixtures
# ============================================================================


@pytest.fixture
def accounts(db: Database) -> AccountManager:
    """Create an AccountManager with the test database."""
    return AccountManager(db)


@pytest.fixture
def catalog(db: Database) -> CatalogManager:
    """Create a CatalogManager with the test database."""
    return CatalogManager(db)


@pytest.fixture
def manager(db: Database) -> LendingManager:
    """Create a LendingManager with the test database."""
    return LendingManager(db)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_user(accounts: AccountManager) -> User:
    """Create a regular user."""
    return accounts.create_user(
        UserCreate(
            username="jdoe",
            email="jdoe@example.com",
            full_name="Jane Doe",
        )
    )


@pytest.fixture
def other_user(accounts: AccountManager) -> User:
    """Create a second user."""
    return accounts.create_user(
        UserCreate(
            username="asmith",
            email="asmith@example.com",
            full_name="Alex Smith",
            role=UserRole.ADMIN,
        )
    )


@pytest.fixture
def sample_item(catalog: CatalogManager) -> Item:
    """Create an available item."""
    return catalog.create_item(
        ItemCreate(
            name="Digital Multimeter",
            asset_code="LAB-0001",
            description="Fluke 115",
            condition=ItemCondition.GOOD,
            storage_location="Cabinet A",
            quantity=1,
        )
    )


@pytest.fixture
def multiple_items(catalog: CatalogManager) -> list[Item]:
    """Create several items across locations and conditions."""
    items_data = [
        ItemCreate(
            name="Oscilloscope",
            asset_code="LAB-0100",
            condition=ItemCondition.EXCELLENT,
            storage_location="Cabinet A",
        ),
        ItemCreate(
            name="Soldering Station",
            asset_code="LAB-0101",
            condition=ItemCondition.FAIR,
            storage_location="Bench 2",
            quantity=4,
        ),
        ItemCreate(
            name="Bench Power Supply",
            asset_code="PSU-0001",
            condition=ItemCondition.GOOD,
            storage_location="Cabinet A",
        ),
        ItemCreate(
            name="Breadboard Kit",
            asset_code="KIT-0007",
            condition=ItemCondition.DAMAGED,
            storage_location="Drawer 5",
            quantity=10,
        ),
    ]
    return [catalog.create_item(data) for data in items_data]


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_env(temp_db_path: Path) -> Generator[Path, None, None]:
    """Point the global config and database at a temporary file."""
    reset_db()
    reset_config()
    os.environ["LABSTOCK_DB_PATH"] = str(temp_db_path)

    yield temp_db_path

    reset_db()
    reset_config()
    if "LABSTOCK_DB_PATH" in os.environ:
        del os.environ["LABSTOCK_DB_PATH"]


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from labstock.inventory.cli import app
    return app
