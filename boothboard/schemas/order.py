"""
Restock order schemas
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from boothboard.schemas.base import DomainModel, PayloadModel


class OrderStatus(str, Enum):
    """Lifecycle of a restock order. Only pending is non-terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return self is OrderStatus.PENDING and target.is_terminal


class Order(DomainModel):
    """
    Restock request raised by booth staff and resolved by the admin
    Immutable except for status
    """
    id: str = Field(..., min_length=1)
    booth_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(...)
    notes: str = Field(default="")
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    created_by: Optional[str] = None
    created_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status is OrderStatus.PENDING


class OrderCreate(PayloadModel):
    booth_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    notes: str = Field(default="")
    created_by: str = Field(..., min_length=1)
    status: OrderStatus = OrderStatus.PENDING
