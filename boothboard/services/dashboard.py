"""
Base class for dashboard view state

Each dashboard owns a set of named slices (booths, products, orders, ...)
projected from the entity store. Shared behaviour:
- load() fetches slices concurrently; a failed slice is logged and left empty,
  and loading always ends up False
- every slice write checks the liveness flag and a per-slice generation, so an
  unmounted view is never updated and an older reload never overwrites a newer one
- mutations write first, then reload the affected slices; a failed write
  propagates and leaves state untouched
- cascading deletes restore the removed children when a later step fails
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from boothboard.core.exceptions import InvalidOrderTransition, NotFoundError
from boothboard.schemas.base import parse_row
from boothboard.schemas.order import Order, OrderStatus
from boothboard.services.change_feed import Binding, ChangeFeedSubscriber
from boothboard.store.base import ORDERS, Clause, EntityStore, Eq

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[Any]]
Confirm = Callable[[str], bool]
DeleteStep = Tuple[str, Sequence[Clause]]


class Dashboard:
    """
    Shared state handling for the admin, booth detail and booth staff views

    Subclasses set SLICES (slice name -> factory for its empty value),
    implement _fetchers() and _bindings(), and may override _feed_key().
    """

    owner = "dashboard"
    SLICES: Dict[str, Callable[[], Any]] = {}

    def __init__(self, store: EntityStore):
        self._store = store
        self._feed = ChangeFeedSubscriber(store, owner=self.owner)
        self._alive = False
        self._generations: Dict[str, int] = {name: 0 for name in self.SLICES}
        self._not_found: Set[str] = set()
        self.loading = True
        for name, factory in self.SLICES.items():
            setattr(self, name, factory())

    # Lifecycle

    @property
    def mounted(self) -> bool:
        return self._alive

    @property
    def live(self) -> bool:
        """True while change-feed updates are arriving."""
        return self._feed.live

    async def mount(self) -> None:
        """
        Open the change-feed subscriptions, then run the initial load.
        A write landing while a slice fetch is in flight triggers a reload
        that supersedes the in-flight response.
        """
        self._alive = True
        await self._open_feed()
        await self.load()

    def unmount(self) -> None:
        """
        Stop all state updates. In-flight requests finish and are discarded.
        """
        self._alive = False
        self._feed.close()

    async def settle(self) -> None:
        """Wait for reloads triggered by the change feed to finish."""
        await self._feed.wait_idle()

    async def _open_feed(self) -> None:
        if not self._alive:
            return
        await self._feed.open(self._feed_key(), self._bindings())

    def _feed_key(self) -> Any:
        return self.owner

    def _fetchers(self) -> Dict[str, Fetch]:
        raise NotImplementedError

    def _bindings(self) -> Sequence[Binding]:
        raise NotImplementedError

    # Slices

    def _begin(self, name: str) -> int:
        self._generations[name] += 1
        return self._generations[name]

    def _commit(self, name: str, generation: int, value: Any) -> bool:
        if not self._alive or generation != self._generations[name]:
            return False
        setattr(self, name, value)
        return True

    async def refresh(self, name: str) -> None:
        """
        Refetch one slice. Errors propagate; prior state is kept on failure.
        A missing row is a state, not a failure: the slice is emptied and marked not found.
        """
        generation = self._begin(name)
        try:
            value = await self._fetchers()[name]()
        except NotFoundError as e:
            logger.info(f"{self.owner}: {e}")
            if self._commit(name, generation, self.SLICES[name]()):
                self._not_found.add(name)
            return
        if self._commit(name, generation, value):
            self._not_found.discard(name)

    async def _load_slice(self, name: str) -> None:
        generation = self._begin(name)
        try:
            value = await self._fetchers()[name]()
        except NotFoundError as e:
            logger.info(f"{self.owner}: {e}")
            if self._commit(name, generation, self.SLICES[name]()):
                self._not_found.add(name)
            return
        except Exception as e:
            logger.error(f"{self.owner}: error loading {name}: {type(e).__name__}: {e}")
            self._commit(name, generation, self.SLICES[name]())
            return
        if self._commit(name, generation, value):
            self._not_found.discard(name)

    async def load(self, names: Optional[Iterable[str]] = None) -> None:
        """
        Fetch the given slices (default: all) concurrently.
        """
        names = list(names) if names is not None else list(self.SLICES)
        if self._alive:
            self.loading = True
        try:
            await asyncio.gather(*(self._load_slice(name) for name in names))
        finally:
            if self._alive:
                self.loading = False

    async def _reload_after_write(self, names: Sequence[str]) -> None:
        # Runs after the write has settled; a failed reload is logged, not raised
        for name in names:
            try:
                await self.refresh(name)
            except Exception as e:
                logger.error(f"{self.owner}: reload of {name} after write failed: {e}")

    def _reloader(self, name: str) -> Fetch:
        async def reload() -> None:
            await self.refresh(name)

        return reload

    # Shared mutations

    @staticmethod
    def _confirmed(confirm: Optional[Confirm], prompt: str) -> bool:
        if confirm is None:
            return False
        return bool(confirm(prompt))

    async def _delete_cascade(self, steps: Sequence[DeleteStep], reload: Sequence[str]) -> None:
        """
        Delete children before their parent, one store call per step.

        If a step fails, the rows removed by earlier steps are inserted again
        (last deleted first) and the error propagates. The affected slices are
        reloaded either way.

        Args:
            steps: (table, where) pairs in deletion order
            reload: Slices to refetch afterwards
        """
        deleted: List[Tuple[str, List[dict]]] = []
        try:
            for table, where in steps:
                rows = await self._store.select(table, where)
                await self._store.delete(table, where)
                deleted.append((table, rows))
        except Exception:
            await self._restore(deleted)
            raise
        finally:
            await self._reload_after_write(reload)

    async def _restore(self, deleted: Sequence[Tuple[str, List[dict]]]) -> None:
        for table, rows in reversed(deleted):
            if not rows:
                continue
            try:
                await self._store.insert(table, rows)
                logger.warning(f"{self.owner}: restored {len(rows)} row(s) in {table}")
            except Exception as e:
                logger.error(
                    f"{self.owner}: could not restore {len(rows)} row(s) in {table}: {e}",
                    exc_info=True,
                )

    async def _change_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Move a pending order to completed or cancelled.

        The update is conditional on the row still being pending, so a
        concurrent resolution by someone else is detected.

        Raises:
            NotFoundError: If the order does not exist
            InvalidOrderTransition: If the order is no longer pending or the target is pending
        """
        target = OrderStatus(status)
        if OrderStatus.PENDING.can_transition_to(target):
            rows = await self._store.update(
                ORDERS,
                {"status": target.value},
                [Eq("id", order_id), Eq("status", OrderStatus.PENDING.value)],
            )
            if rows:
                return parse_row(Order, rows[0], ORDERS)

        existing = await self._store.select(ORDERS, [Eq("id", order_id)])
        if not existing:
            raise NotFoundError(ORDERS, order_id)
        current = parse_row(Order, existing[0], ORDERS)
        raise InvalidOrderTransition(order_id, current.status.value, target.value)
