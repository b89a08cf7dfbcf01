"""
Order record and its status lifecycle.

PENDING -> PROCESSING -> CART_READY -> CONFIRMED, with FAILED and CANCELLED
reachable from every non-terminal status. Statuses never move backward and
terminal records are never mutated.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.errors import OrderTransitionError, TerminalRecordError
from .grocery_list import GroceryItem
from .state import CartBuildResult


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    CART_READY = "CART_READY"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    # Older records and the remote service call the placed status PLACED
    PLACED = "CONFIRMED"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.upper() == "PLACED":
            return cls.CONFIRMED
        return None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.FAILED, OrderStatus.CANCELLED}
)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.FAILED, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.CART_READY, OrderStatus.FAILED, OrderStatus.CANCELLED}),
    OrderStatus.CART_READY: frozenset({OrderStatus.CONFIRMED, OrderStatus.FAILED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_METHOD_COD = "COD"


class OrderRecord(BaseModel):
    """Persisted order attempt for one grocery list."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    status: OrderStatus = OrderStatus.PENDING
    grocery_items: List[GroceryItem]
    total_items: int = 0
    allergen_warnings: List[str] = Field(default_factory=list)
    family_size: int = 1
    estimated_total: Optional[float] = None
    swiggy_cart_id: Optional[str] = None
    swiggy_order_id: Optional[str] = None
    error_message: Optional[str] = None
    delivery_address_id: Optional[str] = None
    delivery_address: Optional[str] = None
    estimated_delivery: Optional[str] = None
    payment_method: Optional[str] = None
    items_added: List[str] = Field(default_factory=list)
    items_not_found: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    order_placed_at: Optional[datetime] = None

    @field_validator("grocery_items")
    @classmethod
    def check_not_empty(cls, v):
        if not v:
            raise ValueError("Order must contain at least one grocery item")
        return v

    def model_post_init(self, __context) -> None:
        if not self.total_items:
            self.total_items = len(self.grocery_items)

    def transition_to(self, target: OrderStatus, **changes: Any) -> "OrderRecord":
        """
        Return a copy moved to `target` with `changes` applied.

        Raises:
            TerminalRecordError: the record is already CONFIRMED, FAILED or CANCELLED
            OrderTransitionError: `target` is not reachable from the current status
        """
        target = OrderStatus(target)
        if self.status.is_terminal:
            raise TerminalRecordError(self.id, self.status.value, target.value)
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise OrderTransitionError(self.id, self.status.value, target.value)

        update = dict(changes)
        update["status"] = target
        update["updated_at"] = datetime.utcnow()
        return self.model_copy(update=update)


class OrderOutcome(BaseModel):
    """Typed result of an order operation, with a machine-readable reason on failure."""
    success: bool
    order: Optional[OrderRecord] = None
    reason: Optional[str] = None
    message: str = ""
    build: Optional[CartBuildResult] = None

    @classmethod
    def failure(cls, reason: str, message: str, order: Optional[OrderRecord] = None, **extra: Any) -> "OrderOutcome":
        return cls(success=False, reason=reason, message=message, order=order, **extra)
