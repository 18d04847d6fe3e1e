"""
In-process entity store
Keeps tables in dictionaries and delivers change events as asyncio tasks.
Mirrors the constraints of the hosted schema: primary keys, the one-booth-per-staff
unique constraint and restricting foreign keys.
"""
import asyncio
import copy
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

from boothboard.core.exceptions import (
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    AuthError,
    StoreError,
)
from boothboard.schemas.account import Account, AuthSession
from boothboard.store.base import (
    BOOTHS,
    DELETE,
    INSERT,
    MESSAGES,
    ORDERS,
    PRODUCTS,
    PROFILES,
    SIGNED_IN,
    SIGNED_OUT,
    TABLES,
    UPDATE,
    AuthCallback,
    ChangeCallback,
    ChangeEvent,
    Clause,
    EntityStore,
    OrderBy,
    Row,
    Subscription,
    Topic,
)

logger = logging.getLogger(__name__)

# (column, referenced table) pairs; every reference restricts deletion
FOREIGN_KEYS: Dict[str, List[Tuple[str, str]]] = {
    PRODUCTS: [("booth_id", BOOTHS)],
    ORDERS: [("booth_id", BOOTHS), ("product_id", PRODUCTS)],
    MESSAGES: [("to_booth_id", BOOTHS)],
}

# Columns that must be unique when not null (besides id)
UNIQUE_COLUMNS: Dict[str, List[str]] = {
    BOOTHS: ["staff_id"],
}

# Column defaults applied on insert
DEFAULTS: Dict[str, dict] = {
    BOOTHS: {"description": "", "staff_id": None},
    PRODUCTS: {"is_out_of_stock": False},
    ORDERS: {"notes": "", "status": "pending", "created_by": None},
    MESSAGES: {"to_booth_id": None, "is_read": False},
    PROFILES: {"full_name": ""},
}

TIMESTAMPED = (ORDERS, MESSAGES)


def _sort_value(value):
    # None sorts last, like PostgreSQL's default NULLS LAST for ascending order
    return (value is None, value if value is not None else 0)


class InMemoryStore(EntityStore):
    """
    Entity store backed by dictionaries

    Args:
        profile_trigger: Create the profile row from sign-up metadata, like the
            hosted database trigger does
    """

    def __init__(self, profile_trigger: bool = True):
        self.profile_trigger = profile_trigger
        self._tables: Dict[str, Dict[str, dict]] = {name: {} for name in TABLES}
        self._users: Dict[str, dict] = {}
        self._session: Optional[AuthSession] = None
        self._subscriptions: Dict[int, Tuple[Topic, ChangeCallback]] = {}
        self._auth_listeners: Dict[int, AuthCallback] = {}
        self._next_handle = 0
        self._pending: Set[asyncio.Task] = set()
        self._last_timestamp = datetime.now(timezone.utc)

    # Helpers

    def _table(self, table: str) -> Dict[str, dict]:
        if table not in self._tables:
            raise StoreError(f'relation "{table}" does not exist', code="42P01")
        return self._tables[table]

    def _timestamp(self) -> str:
        # Strictly increasing so newest-first ordering is deterministic
        now = datetime.now(timezone.utc)
        if now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    @staticmethod
    def _matches(row: Row, where: Sequence[Clause]) -> bool:
        return all(clause.matches(row) for clause in where)

    def _check_constraints(self, table: str, row: dict) -> None:
        for column, referenced in FOREIGN_KEYS.get(table, []):
            value = row.get(column)
            if value is not None and value not in self._tables[referenced]:
                raise StoreError(
                    f'insert or update on table "{table}" violates foreign key constraint '
                    f'on "{column}"',
                    code=FOREIGN_KEY_VIOLATION,
                )
        for column in UNIQUE_COLUMNS.get(table, []):
            value = row.get(column)
            if value is None:
                continue
            for other in self._tables[table].values():
                if other["id"] != row["id"] and other.get(column) == value:
                    raise StoreError(
                        f'duplicate key value violates unique constraint on "{table}.{column}"',
                        code=UNIQUE_VIOLATION,
                    )

    def _check_not_referenced(self, table: str, row_id: str) -> None:
        for child, references in FOREIGN_KEYS.items():
            for column, referenced in references:
                if referenced != table:
                    continue
                if any(r.get(column) == row_id for r in self._tables[child].values()):
                    raise StoreError(
                        f'update or delete on table "{table}" violates foreign key constraint '
                        f'on table "{child}"',
                        code=FOREIGN_KEY_VIOLATION,
                    )

    def _schedule(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Change listener failed: {type(exc).__name__}: {exc}", exc_info=exc)

    def _emit(self, event: ChangeEvent) -> None:
        for topic, callback in list(self._subscriptions.values()):
            if topic.matches(event):
                self._schedule(callback(event))

    def _emit_auth(self, event: str, session: Optional[AuthSession]) -> None:
        for callback in list(self._auth_listeners.values()):
            self._schedule(callback(event, session))

    def _handle(self) -> int:
        self._next_handle += 1
        return self._next_handle

    async def drain(self) -> None:
        """
        Wait until every scheduled change and auth delivery has finished
        """
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Tables

    async def select(
        self,
        table: str,
        where: Sequence[Clause] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> List[dict]:
        rows = [copy.deepcopy(r) for r in self._table(table).values() if self._matches(r, where)]
        # Stable sorts applied from the least significant key
        for order in reversed(list(order_by)):
            rows.sort(key=lambda r: _sort_value(r.get(order.column)), reverse=order.descending)
        return rows

    async def insert(self, table: str, rows: Sequence[Row]) -> List[dict]:
        stored = self._table(table)
        prepared = []
        for row in rows:
            new_row = dict(DEFAULTS.get(table, {}))
            new_row.update(row)
            new_row.setdefault("id", str(uuid.uuid4()))
            if table in TIMESTAMPED:
                new_row.setdefault("created_at", self._timestamp())
            if new_row["id"] in stored or any(p["id"] == new_row["id"] for p in prepared):
                raise StoreError(
                    f'duplicate key value violates unique constraint "{table}_pkey"',
                    code=UNIQUE_VIOLATION,
                )
            self._check_constraints(table, new_row)
            prepared.append(new_row)

        for new_row in prepared:
            stored[new_row["id"]] = new_row
            self._emit(ChangeEvent(table=table, type=INSERT, record=copy.deepcopy(new_row)))
        return [copy.deepcopy(r) for r in prepared]

    async def update(self, table: str, patch: Row, where: Sequence[Clause]) -> List[dict]:
        if "id" in patch:
            raise StoreError("Primary key columns cannot be updated")
        stored = self._table(table)
        changes = []
        for row in stored.values():
            if not self._matches(row, where):
                continue
            new_row = dict(row)
            new_row.update(patch)
            self._check_constraints(table, new_row)
            changes.append((row, new_row))

        for old_row, new_row in changes:
            stored[new_row["id"]] = new_row
            self._emit(ChangeEvent(
                table=table,
                type=UPDATE,
                record=copy.deepcopy(new_row),
                old_record=copy.deepcopy(old_row),
            ))
        return [copy.deepcopy(new_row) for _, new_row in changes]

    async def delete(self, table: str, where: Sequence[Clause]) -> None:
        stored = self._table(table)
        doomed = [row for row in stored.values() if self._matches(row, where)]
        for row in doomed:
            self._check_not_referenced(table, row["id"])
        for row in doomed:
            del stored[row["id"]]
            self._emit(ChangeEvent(table=table, type=DELETE, old_record=copy.deepcopy(row)))

    # Change feed

    async def subscribe(self, topic: Topic, callback: ChangeCallback) -> Subscription:
        self._table(topic.table)
        handle = self._handle()
        self._subscriptions[handle] = (topic, callback)
        logger.debug(f"Subscribed to {topic}")
        return Subscription(lambda: self._subscriptions.pop(handle, None))

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # Session

    async def get_session(self) -> Optional[AuthSession]:
        return self._session

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        handle = self._handle()
        self._auth_listeners[handle] = callback
        return Subscription(lambda: self._auth_listeners.pop(handle, None))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        user = self._users.get(email.strip().lower())
        if user is None or user["password"] != password:
            raise AuthError("Invalid login credentials", status_code=400)
        self._session = AuthSession(
            access_token=uuid.uuid4().hex,
            account=Account(id=user["id"], email=user["email"]),
        )
        self._emit_auth(SIGNED_IN, self._session)
        return self._session

    async def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> Account:
        key = email.strip().lower()
        if not key or not password:
            raise AuthError("Email and password are required", status_code=400)
        if key in self._users:
            raise AuthError("User already registered", status_code=422)
        user = {
            "id": str(uuid.uuid4()),
            "email": key,
            "password": password,
            "metadata": dict(metadata or {}),
        }
        self._users[key] = user

        if self.profile_trigger:
            meta = user["metadata"]
            await self.insert(PROFILES, [{
                "id": user["id"],
                "full_name": meta.get("full_name", ""),
                "role": meta.get("role", "booth_staff"),
            }])
        return Account(id=user["id"], email=key)

    async def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._emit_auth(SIGNED_OUT, None)
