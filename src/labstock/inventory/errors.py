"""Exception types raised by the inventory managers."""

from typing import Union


class InventoryError(Exception):
    """Base class for inventory errors."""


class NotFoundError(InventoryError, LookupError):
    """A referenced user, item or borrow record does not exist."""

    def __init__(self, entity: str, entity_id: Union[int, str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class ConflictError(InventoryError, ValueError):
    """The operation is not allowed in the entity's current state."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
