"""Configuration management for labstock.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path
    db_timeout: float  # seconds a writer waits on a locked database

    # Lending
    due_soon_days: int

    # Logging
    log_level: str
    log_file: Optional[Path]
    log_rotation: str
    log_retention: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "LABSTOCK_DB_PATH",
            str(Path.home() / ".labstock" / "inventory.db"),
        )
        db_path = Path(db_path_str).expanduser()

        log_file_str = os.environ.get("LABSTOCK_LOG_FILE")

        return cls(
            db_path=db_path,
            db_timeout=float(os.environ.get("LABSTOCK_DB_TIMEOUT", "30")),
            due_soon_days=int(os.environ.get("LABSTOCK_DUE_SOON_DAYS", "7")),
            log_level=os.environ.get("LABSTOCK_LOG_LEVEL", "WARNING").upper(),
            log_file=Path(log_file_str).expanduser() if log_file_str else None,
            log_rotation=os.environ.get("LABSTOCK_LOG_ROTATION", "1 day"),
            log_retention=os.environ.get("LABSTOCK_LOG_RETENTION", "7 days"),
        )

    @property
    def is_memory_db(self) -> bool:
        """Check if the database lives in memory only."""
        return str(self.db_path) == ":memory:"

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.is_memory_db and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.db_timeout <= 0:
            errors.append(f"Database timeout must be positive: {self.db_timeout}")

        if self.due_soon_days < 0:
            errors.append(f"Due-soon window cannot be negative: {self.due_soon_days}")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
