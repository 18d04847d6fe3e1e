"""
Message schemas
A message without a target booth is a broadcast
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from boothboard.schemas.base import DomainModel, PayloadModel


class Message(DomainModel):
    """
    Message from the admin to one booth or to all booths

    Attributes:
        to_booth_id: Target booth, None for a broadcast
        is_read: Set by the receiving staff view only
    """
    id: str = Field(..., min_length=1)
    from_user_id: str = Field(..., min_length=1)
    to_booth_id: Optional[str] = None
    message: str = Field(...)
    is_read: bool = Field(default=False)
    created_at: datetime

    @property
    def is_broadcast(self) -> bool:
        return self.to_booth_id is None

    def is_visible_to(self, booth_id: Optional[str]) -> bool:
        """
        Visibility rule: admin (booth_id=None) sees every message,
        a booth sees broadcasts and messages addressed to it
        """
        if booth_id is None:
            return True
        return self.is_broadcast or self.to_booth_id == booth_id


class MessageCreate(PayloadModel):
    from_user_id: str = Field(..., min_length=1)
    to_booth_id: Optional[str] = None
    message: str = Field(..., min_length=1)
