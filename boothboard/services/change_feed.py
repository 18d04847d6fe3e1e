"""
Change-feed subscriber
Holds one subscription per watched topic for a view and turns change events
into reloads of the affected slice.

Rules:
- Subscriptions are keyed on a stable identifier (e.g. the booth ID); opening
  with the same key again is a no-op, a new key replaces every subscription
- An event is only a trigger: the reload always refetches current state
- Events arriving while a reload for the same topic runs coalesce into one
  follow-up reload, so state is never older than the last observed event
- A topic that cannot be subscribed is logged and skipped; the view keeps
  working without live updates
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from boothboard.store.base import ChangeEvent, EntityStore, Subscription, Topic

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[], Awaitable[Any]]
Binding = Tuple[Topic, ReloadCallback]

_UNSET = object()


@dataclass
class _TopicState:
    running: bool = False
    dirty: bool = False


class ChangeFeedSubscriber:
    """
    Manages the change-feed subscriptions of one view

    Args:
        store: Entity store providing subscribe()
        owner: Name used in log messages
    """

    def __init__(self, store: EntityStore, owner: str = "view"):
        self._store = store
        self._owner = owner
        self._key: Any = _UNSET
        self._subscriptions: List[Subscription] = []
        self._states: Dict[Topic, _TopicState] = {}
        self._tasks: Set[asyncio.Task] = set()
        # Bumped on every teardown; events from older subscriptions are dropped
        self._generation = 0
        self.failed_topics: List[Topic] = []

    @property
    def key(self) -> Optional[Any]:
        return None if self._key is _UNSET else self._key

    @property
    def is_open(self) -> bool:
        return self._key is not _UNSET

    @property
    def live(self) -> bool:
        """True when at least one topic is delivering updates."""
        return bool(self._subscriptions)

    async def open(self, key: Any, bindings: Sequence[Binding]) -> int:
        """
        Subscribe every binding under key.

        Args:
            key: Stable identifier the topics are derived from
            bindings: (topic, reload) pairs

        Returns:
            Number of subscriptions established
        """
        if self._key is not _UNSET and self._key == key:
            return len(self._subscriptions)

        self.close()
        self._key = key
        generation = self._generation
        self.failed_topics = []

        for topic, reload in bindings:
            try:
                subscription = await self._store.subscribe(
                    topic, self._make_handler(topic, reload, generation)
                )
            except Exception as e:
                logger.warning(
                    f"{self._owner}: could not subscribe to {topic}, live updates disabled: {e}"
                )
                self.failed_topics.append(topic)
                continue
            if generation != self._generation:
                # Closed while subscribing
                subscription.unsubscribe()
                break
            self._subscriptions.append(subscription)

        logger.debug(
            f"{self._owner}: {len(self._subscriptions)} subscription(s) open for key {key!r}"
        )
        return len(self._subscriptions)

    def close(self) -> None:
        """
        Tear down every subscription. In-flight reloads are not cancelled.
        """
        for subscription in self._subscriptions:
            try:
                subscription.unsubscribe()
            except Exception as e:
                logger.warning(f"{self._owner}: unsubscribe failed: {e}")
        self._subscriptions = []
        self._states = {}
        self._key = _UNSET
        self._generation += 1

    def _make_handler(self, topic: Topic, reload: ReloadCallback, generation: int):
        async def handle(event: ChangeEvent) -> None:
            if generation != self._generation:
                return
            logger.debug(f"{self._owner}: {event.type} on {event.table}, reloading {topic}")
            self.trigger(topic, reload)

        return handle

    def trigger(self, topic: Topic, reload: ReloadCallback) -> None:
        """
        Request a reload for topic, coalescing with one already running.
        """
        state = self._states.setdefault(topic, _TopicState())
        if state.running:
            state.dirty = True
            return
        state.running = True
        task = asyncio.get_running_loop().create_task(self._run(topic, state, reload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, topic: Topic, state: _TopicState, reload: ReloadCallback) -> None:
        try:
            while True:
                state.dirty = False
                try:
                    await reload()
                except Exception as e:
                    logger.error(
                        f"{self._owner}: reload for {topic} failed: {type(e).__name__}: {e}",
                        exc_info=True,
                    )
                if not state.dirty or self._states.get(topic) is not state:
                    break
        finally:
            state.running = False

    async def wait_idle(self) -> None:
        """
        Wait for every in-flight reload to finish
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
