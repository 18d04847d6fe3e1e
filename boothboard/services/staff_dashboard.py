"""
Booth staff dashboard view state

The booth is resolved by matching the signed-in account against
Booth.staff_id. No match is the "unassigned" state: a valid end state of the
view, not an error and not a loading condition.
"""
import logging
from typing import Dict, List, Optional, Sequence

from boothboard.core.exceptions import NotFoundError
from boothboard.schemas.account import Account
from boothboard.schemas.base import parse_row, parse_rows
from boothboard.schemas.booth import Booth, Product
from boothboard.schemas.message import Message
from boothboard.schemas.notification import Notification
from boothboard.schemas.order import Order, OrderCreate
from boothboard.services.booth_detail import booth_messages_filter
from boothboard.services.change_feed import Binding
from boothboard.services.dashboard import Dashboard, Fetch
from boothboard.services.notifications import booth_notifications
from boothboard.store.base import BOOTHS, MESSAGES, ORDERS, PRODUCTS, Eq, OrderBy, Topic

logger = logging.getLogger(__name__)

BOOTH_SLICES = ("products", "orders", "messages")


class BoothStaffDashboard(Dashboard):
    """
    The signed-in staff member's own booth

    Attributes:
        booth: Assigned booth, None when unassigned
        products: Catalog ordered by name
        orders: Restock orders of the booth, newest first
        messages: Direct and broadcast messages, newest first
    """

    owner = "booth_staff"
    SLICES = {
        "booth": lambda: None,
        "products": list,
        "orders": list,
        "messages": list,
    }

    def __init__(self, store, account: Account):
        super().__init__(store)
        self.account = account

    @property
    def booth_id(self) -> Optional[str]:
        return self.booth.id if self.booth else None

    @property
    def unassigned(self) -> bool:
        """True once loading found no booth for this account."""
        return not self.loading and "booth" in self._not_found

    @property
    def unread_messages(self) -> List[Message]:
        return [m for m in self.messages if not m.is_read]

    def notifications(self) -> List[Notification]:
        if self.booth is None:
            return []
        return booth_notifications(self.booth.id, self.messages, self.orders, self.products)

    # Loading

    async def load(self, names=None) -> None:
        """
        Resolve the booth first; the remaining slices depend on its ID. Their
        subscriptions are opened before they are fetched concurrently.
        """
        if names is not None:
            await super().load(names)
            return
        if self._alive:
            self.loading = True
        try:
            await self._load_slice("booth")
            # Re-key under the resolved booth before its slices are fetched
            await self._open_feed()
            await super().load(BOOTH_SLICES)
        finally:
            if self._alive:
                self.loading = False

    async def _fetch_booth(self) -> Booth:
        rows = await self._store.select(BOOTHS, [Eq("staff_id", self.account.id)])
        if not rows:
            raise NotFoundError(BOOTHS, f"staff_id={self.account.id}")
        if len(rows) > 1:
            logger.warning(f"Account {self.account.id} is assigned to {len(rows)} booths, using the first")
        return parse_row(Booth, rows[0], BOOTHS)

    async def _fetch_products(self) -> List[Product]:
        if self.booth is None:
            return []
        rows = await self._store.select(
            PRODUCTS, [Eq("booth_id", self.booth.id)], [OrderBy("name")]
        )
        return parse_rows(Product, rows, PRODUCTS)

    async def _fetch_orders(self) -> List[Order]:
        if self.booth is None:
            return []
        rows = await self._store.select(
            ORDERS,
            [Eq("booth_id", self.booth.id)],
            [OrderBy("created_at", descending=True)],
        )
        return parse_rows(Order, rows, ORDERS)

    async def _fetch_messages(self) -> List[Message]:
        if self.booth is None:
            return []
        rows = await self._store.select(
            MESSAGES,
            [booth_messages_filter(self.booth.id)],
            [OrderBy("created_at", descending=True)],
        )
        return parse_rows(Message, rows, MESSAGES)

    def _fetchers(self) -> Dict[str, Fetch]:
        return {
            "booth": self._fetch_booth,
            "products": self._fetch_products,
            "orders": self._fetch_orders,
            "messages": self._fetch_messages,
        }

    async def _reload_booth(self) -> None:
        """
        Change-feed reload for the booth. An assignment change re-keys the
        subscriptions and reloads the booth's slices.
        """
        previous = self.booth_id
        generation = self._begin("booth")
        try:
            booth: Optional[Booth] = await self._fetch_booth()
        except NotFoundError:
            booth = None
        if not self._commit("booth", generation, booth):
            return
        if booth is None:
            self._not_found.add("booth")
        else:
            self._not_found.discard("booth")

        if self.booth_id != previous:
            logger.info(f"Booth assignment for {self.account.id} changed to {self.booth_id}")
            await self._open_feed()
            await super().load(BOOTH_SLICES)

    def _feed_key(self) -> Optional[str]:
        return self.booth_id

    def _bindings(self) -> Sequence[Binding]:
        bindings: List[Binding] = [
            (Topic(BOOTHS, Eq("staff_id", self.account.id)), self._reload_booth),
        ]
        if self.booth is not None:
            bindings.extend([
                (Topic(PRODUCTS, Eq("booth_id", self.booth.id)), self._reloader("products")),
                (Topic(ORDERS, Eq("booth_id", self.booth.id)), self._reloader("orders")),
                (Topic(MESSAGES), self._reloader("messages")),
            ])
        return bindings

    # Mutations

    def _require_booth(self) -> Booth:
        if self.booth is None:
            raise NotFoundError(BOOTHS, f"staff_id={self.account.id}")
        return self.booth

    async def toggle_out_of_stock(self, product_id: str) -> Product:
        """
        Flip the out-of-stock flag of one of the booth's products.

        Raises:
            NotFoundError: If the product is not in this booth's catalog
        """
        booth = self._require_booth()
        product = next((p for p in self.products if p.id == product_id), None)
        if product is None:
            raise NotFoundError(PRODUCTS, product_id)
        rows = await self._store.update(
            PRODUCTS,
            {"is_out_of_stock": not product.is_out_of_stock},
            [Eq("id", product_id), Eq("booth_id", booth.id)],
        )
        if not rows:
            raise NotFoundError(PRODUCTS, product_id)
        await self._reload_after_write(["products"])
        return parse_row(Product, rows[0], PRODUCTS)

    async def mark_message_read(self, message_id: str) -> Message:
        """
        Mark a message read. The flag is per message, so a broadcast read here
        is read for every booth.
        """
        rows = await self._store.update(MESSAGES, {"is_read": True}, [Eq("id", message_id)])
        if not rows:
            raise NotFoundError(MESSAGES, message_id)
        await self._reload_after_write(["messages"])
        return parse_row(Message, rows[0], MESSAGES)

    async def create_order(self, product_id: str, quantity: int, notes: str = "") -> Order:
        """
        Raise a restock order for one of the booth's products.

        Raises:
            NotFoundError: If the booth is unassigned or the product is not in its catalog
        """
        booth = self._require_booth()
        payload = OrderCreate(
            booth_id=booth.id,
            product_id=product_id,
            quantity=quantity,
            notes=notes,
            created_by=self.account.id,
        )
        owned = await self._store.select(PRODUCTS, [Eq("id", product_id), Eq("booth_id", booth.id)])
        if not owned:
            raise NotFoundError(PRODUCTS, product_id)
        rows = await self._store.insert(ORDERS, [payload.to_row()])
        await self._reload_after_write(["orders"])
        return parse_row(Order, rows[0], ORDERS)
