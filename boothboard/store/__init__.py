"""
Entity store interface and implementations
"""

from boothboard.store.base import (
    BOOTHS,
    MESSAGES,
    ORDERS,
    PRODUCTS,
    PROFILES,
    AnyOf,
    ChangeEvent,
    EntityStore,
    Eq,
    OrderBy,
    Subscription,
    Topic,
)
from boothboard.store.memory import InMemoryStore
from boothboard.store.rest import RestStore

__all__ = [
    "BOOTHS",
    "MESSAGES",
    "ORDERS",
    "PRODUCTS",
    "PROFILES",
    "AnyOf",
    "ChangeEvent",
    "EntityStore",
    "Eq",
    "InMemoryStore",
    "OrderBy",
    "RestStore",
    "Subscription",
    "Topic",
]
