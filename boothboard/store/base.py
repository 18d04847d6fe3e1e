"""
Entity store interface
The store is an injected collaborator: views and the session context only see this interface
Reference: https://supabase.com/docs/reference/javascript/select
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Union

from boothboard.schemas.account import Account, AuthSession

# Table names
PROFILES = "profiles"
BOOTHS = "booths"
PRODUCTS = "products"
ORDERS = "orders"
MESSAGES = "messages"

TABLES = (PROFILES, BOOTHS, PRODUCTS, ORDERS, MESSAGES)

# Change kinds
INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

# Auth state events
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

Row = Mapping[str, Any]


@dataclass(frozen=True)
class Eq:
    """
    Equality filter; value=None means IS NULL
    """
    column: str
    value: Any

    def matches(self, row: Row) -> bool:
        return row.get(self.column) == self.value


@dataclass(frozen=True)
class AnyOf:
    """
    Disjunction of equality filters
    """
    clauses: Sequence[Eq]

    def matches(self, row: Row) -> bool:
        return any(clause.matches(row) for clause in self.clauses)


Clause = Union[Eq, AnyOf]


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class ChangeEvent:
    """
    Row-level change notification
    A trigger for a reload, never applied to view state directly
    """
    table: str
    type: str
    record: Row = field(default_factory=dict)
    old_record: Row = field(default_factory=dict)


@dataclass(frozen=True)
class Topic:
    """
    A watched table, optionally narrowed by one equality filter
    """
    table: str
    filter: Optional[Eq] = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.filter is None:
            return True
        return self.filter.matches(event.record) or self.filter.matches(event.old_record)

    def __str__(self) -> str:
        if self.filter is None:
            return self.table
        return f"{self.table}:{self.filter.column}=eq.{self.filter.value}"


ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]
AuthCallback = Callable[[str, Optional[AuthSession]], Awaitable[None]]


class Subscription:
    """
    Handle returned by subscribe calls
    unsubscribe() is idempotent
    """

    def __init__(self, on_unsubscribe: Callable[[], None]):
        self._on_unsubscribe = on_unsubscribe
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._on_unsubscribe()


class EntityStore(ABC):
    """
    Tables, change feed and session primitives of the backing store

    Every method raises StoreError (tables) or AuthError (session) on failure.
    """

    # Tables

    @abstractmethod
    async def select(
        self,
        table: str,
        where: Sequence[Clause] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> List[dict]:
        """Return the rows of table matching every clause."""

    @abstractmethod
    async def insert(self, table: str, rows: Sequence[Row]) -> List[dict]:
        """Insert rows and return them as stored (with generated columns)."""

    @abstractmethod
    async def update(self, table: str, patch: Row, where: Sequence[Clause]) -> List[dict]:
        """Apply patch to matching rows and return the updated rows."""

    @abstractmethod
    async def delete(self, table: str, where: Sequence[Clause]) -> None:
        """Delete matching rows."""

    # Change feed

    @abstractmethod
    async def subscribe(self, topic: Topic, callback: ChangeCallback) -> Subscription:
        """Deliver every change matching topic to callback until unsubscribed."""

    # Session

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        """Return the current session, or None when signed out."""

    @abstractmethod
    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        """Call callback(event, session) on every sign-in and sign-out."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Authenticate and make the new session current."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> Account:
        """Create an account; metadata is forwarded to the store's user record."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""

    async def close(self) -> None:
        """Release network resources, if any."""
        return None
