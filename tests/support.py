"""
Shared helpers for the test suite
Every test drives its coroutines with asyncio.run so the in-memory store's
delivery tasks live on a single loop.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from boothboard.schemas.account import Account, Role
from boothboard.store.memory import InMemoryStore

PASSWORD = "hemligt123"
T0 = datetime(2025, 12, 1, 10, 0, 0, tzinfo=timezone.utc)


def run(coro):
    return asyncio.run(coro)


def at(minutes: int) -> str:
    return (T0 + timedelta(minutes=minutes)).isoformat()


async def make_account(
    store: InMemoryStore,
    email: str,
    role: Role = Role.BOOTH_STAFF,
    full_name: str = "Test User",
) -> Account:
    """Sign up an account; the store trigger creates its profile."""
    account = await store.sign_up(email, PASSWORD, {"full_name": full_name, "role": role.value})
    if not store.profile_trigger:
        await store.insert("profiles", [{"id": account.id, "full_name": full_name, "role": role.value}])
    await store.drain()
    return account


async def settle(store: InMemoryStore, *views) -> None:
    """Deliver pending change events and wait for the reloads they trigger."""
    for _ in range(3):
        await store.drain()
        for view in views:
            await view.settle()


class CallLog:
    """Records every table call made through a store."""

    def __init__(self, store: InMemoryStore):
        self.calls: List[tuple] = []
        for name in ("select", "insert", "update", "delete"):
            self._wrap(store, name)

    def _wrap(self, store: InMemoryStore, name: str) -> None:
        original = getattr(store, name)

        async def wrapper(table, *args, **kwargs):
            self.calls.append((name, table))
            return await original(table, *args, **kwargs)

        setattr(store, name, wrapper)

    def clear(self) -> None:
        self.calls = []


class Gate:
    """
    Blocks select() on one table until released.

    Args:
        times: How many calls to block; later calls pass straight through
    """

    def __init__(self, store: InMemoryStore, table: str, times: Optional[int] = None):
        self.table = table
        self.times = times
        self.entered = asyncio.Event()
        self.released = asyncio.Event()
        self.blocked = 0
        original = store.select

        async def select(table, where=(), order_by=()):
            rows = await original(table, where, order_by)
            if table == self.table and (self.times is None or self.blocked < self.times):
                # Responds with the rows read before blocking
                self.blocked += 1
                self.entered.set()
                await self.released.wait()
            return rows

        store.select = select

    def release(self) -> None:
        self.released.set()
