"""
Derived notification items
Never persisted; rebuilt from orders, products and messages on every read
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from boothboard.schemas.base import DomainModel


class NotificationKind(str, Enum):
    UNREAD_MESSAGE = "unread_message"
    PENDING_ORDER = "pending_order"
    OUT_OF_STOCK = "out_of_stock"


class Notification(DomainModel):
    """
    One entry of a booth's notification list

    Attributes:
        kind: What produced the item
        source_id: ID of the message, order or product
        booth_id: Booth the item belongs to (None for broadcasts)
        text: Short human readable summary
        created_at: Timestamp when the source has one
    """
    kind: NotificationKind
    source_id: str
    booth_id: Optional[str] = None
    text: str = Field(default="")
    created_at: Optional[datetime] = None
