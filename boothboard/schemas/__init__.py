"""
Pydantic schemas for store rows and write payloads
"""

from boothboard.schemas.account import Account, AuthSession, Profile, ProfileCreate, Role
from boothboard.schemas.booth import (
    Booth,
    BoothCreate,
    BoothUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)
from boothboard.schemas.message import Message, MessageCreate
from boothboard.schemas.notification import Notification, NotificationKind
from boothboard.schemas.order import Order, OrderCreate, OrderStatus

__all__ = [
    "Account",
    "AuthSession",
    "Booth",
    "BoothCreate",
    "BoothUpdate",
    "Message",
    "MessageCreate",
    "Notification",
    "NotificationKind",
    "Order",
    "OrderCreate",
    "OrderStatus",
    "Product",
    "ProductCreate",
    "ProductUpdate",
    "Profile",
    "ProfileCreate",
    "Role",
]
