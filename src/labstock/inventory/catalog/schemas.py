"""Pydantic schemas for the item catalog."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..db.schemas import ItemCondition

# Columns that cannot be cleared through an update
REQUIRED_FIELDS = ("name", "asset_code", "condition", "storage_location", "quantity")


class ItemBase(BaseModel):
    """Base item fields."""

    name: str = Field(..., min_length=1, max_length=255)
    asset_code: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    purchase_date: Optional[datetime] = None
    condition: ItemCondition = ItemCondition.GOOD
    storage_location: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, gt=0)

    @field_validator("asset_code")
    @classmethod
    def strip_asset_code(cls, v: str) -> str:
        """Asset codes are compared without surrounding whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("asset_code must not be blank")
        return v


class ItemCreate(ItemBase):
    """Schema for creating an item. New items are always available."""

    pass


class ItemUpdate(BaseModel):
    """Schema for updating an item. Only fields that are set are written."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    asset_code: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    purchase_date: Optional[datetime] = None
    condition: Optional[ItemCondition] = None
    storage_location: Optional[str] = Field(None, min_length=1, max_length=255)
    quantity: Optional[int] = Field(None, gt=0)

    @field_validator("asset_code")
    @classmethod
    def strip_asset_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("asset_code must not be blank")
        return v

    @model_validator(mode="after")
    def reject_cleared_required(self) -> "ItemUpdate":
        cleared = [f for f in REQUIRED_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if cleared:
            raise ValueError(f"cannot clear required fields: {', '.join(cleared)}")
        return self


class ItemSearch(BaseModel):
    """Filters for searching the catalog. All given filters must match."""

    query: Optional[str] = None
    condition: Optional[ItemCondition] = None
    storage_location: Optional[str] = None
    available_only: bool = False


class ItemResponse(ItemBase):
    """Schema for item responses."""

    id: int
    current_user_id: Optional[int]
    is_available: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
