"""Account manager for user records."""

from typing import Optional

from loguru import logger
from sqlalchemy import func, or_, select

from ..db.models import User
from ..db.sqlite import Database, get_db
from ..errors import ConflictError
from .schemas import UserCreate


class AccountManager:
    """Manages user accounts."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize account manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def create_user(self, data: UserCreate) -> User:
        """Create a new user.

        Args:
            data: User creation data

        Returns:
            Created user

        Raises:
            ConflictError: If the username or email is already taken
        """
        with self.db.get_session() as session:
            existing = session.execute(
                select(User).where(
                    or_(
                        func.lower(User.username) == data.username.lower(),
                        func.lower(User.email) == data.email.lower(),
                    )
                )
            ).scalars().first()
            if existing:
                if existing.username.lower() == data.username.lower():
                    raise ConflictError(f"Username '{data.username}' is already taken")
                raise ConflictError(f"Email '{data.email}' is already registered")

            user = User(
                username=data.username,
                email=data.email,
                full_name=data.full_name,
                role=data.role.value,
            )
            session.add(user)
            session.flush()
            session.refresh(user)
            session.expunge(user)

        logger.info("Created user {} ({})", user.id, user.username)
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by ID.

        Args:
            user_id: User ID

        Returns:
            User or None
        """
        return self.db.get_user(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Get a user by username (case insensitive)."""
        with self.db.get_session() as session:
            stmt = select(User).where(func.lower(User.username) == username.lower())
            user = session.execute(stmt).scalar_one_or_none()
            if user:
                session.expunge(user)
            return user

    def list_users(self) -> list[User]:
        """List all users, sorted by username."""
        with self.db.get_session() as session:
            users = session.execute(select(User).order_by(User.username)).scalars().all()
            for u in users:
                session.expunge(u)
            return list(users)
