"""Pydantic schemas for user accounts."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from ..db.schemas import UserRole


class UserBase(BaseModel):
    """Base user fields."""

    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.USER


class UserCreate(UserBase):
    """Schema for creating a user."""

    pass


class UserResponse(UserBase):
    """Schema for user responses."""

    id: int
    created_at: datetime

    model_config = {"from_attributes": True}
