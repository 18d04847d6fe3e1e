"""
Booth detail view state
The admin's view of a single booth: catalog, restock orders and messages.
"""
import logging
from typing import Dict, List, Optional, Sequence

from boothboard.core.exceptions import NotFoundError
from boothboard.schemas.account import Account
from boothboard.schemas.base import parse_row, parse_rows
from boothboard.schemas.booth import Booth, Product, ProductCreate, ProductUpdate
from boothboard.schemas.message import Message, MessageCreate
from boothboard.schemas.notification import Notification
from boothboard.schemas.order import Order, OrderStatus
from boothboard.services.change_feed import Binding
from boothboard.services.dashboard import Confirm, Dashboard, Fetch
from boothboard.services.notifications import booth_notifications
from boothboard.store.base import (
    BOOTHS,
    MESSAGES,
    ORDERS,
    PRODUCTS,
    AnyOf,
    Eq,
    OrderBy,
    Topic,
)

logger = logging.getLogger(__name__)


def booth_messages_filter(booth_id: str) -> AnyOf:
    """Messages addressed to the booth or broadcast to all booths."""
    return AnyOf([Eq("to_booth_id", booth_id), Eq("to_booth_id", None)])


class BoothDetailView(Dashboard):
    """
    One booth as seen by the admin

    Attributes:
        booth: The booth, None while loading or when it does not exist
        products: Catalog ordered by name
        orders: Every restock order of the booth, newest first
        messages: Direct and broadcast messages visible to the booth, newest first
    """

    owner = "booth_detail"
    SLICES = {
        "booth": lambda: None,
        "products": list,
        "orders": list,
        "messages": list,
    }

    def __init__(self, store, account: Account, booth_id: str):
        super().__init__(store)
        self.account = account
        self.booth_id = booth_id

    @property
    def not_found(self) -> bool:
        """True when the booth lookup found no row (e.g. deleted booth)."""
        return "booth" in self._not_found

    def notifications(self) -> List[Notification]:
        return booth_notifications(self.booth_id, self.messages, self.orders, self.products)

    async def show(self, booth_id: str) -> None:
        """
        Switch to another booth: reset state, reload and re-subscribe under the new ID.
        """
        if booth_id == self.booth_id and self._feed.is_open:
            return
        self.booth_id = booth_id
        if not self._alive:
            return
        for name, factory in self.SLICES.items():
            self._begin(name)
            setattr(self, name, factory())
        self._not_found.clear()
        await self._open_feed()
        await self.load()

    # Loading

    async def _fetch_booth(self) -> Booth:
        rows = await self._store.select(BOOTHS, [Eq("id", self.booth_id)])
        if not rows:
            raise NotFoundError(BOOTHS, self.booth_id)
        return parse_row(Booth, rows[0], BOOTHS)

    async def _fetch_products(self) -> List[Product]:
        rows = await self._store.select(
            PRODUCTS, [Eq("booth_id", self.booth_id)], [OrderBy("name")]
        )
        return parse_rows(Product, rows, PRODUCTS)

    async def _fetch_orders(self) -> List[Order]:
        rows = await self._store.select(
            ORDERS,
            [Eq("booth_id", self.booth_id)],
            [OrderBy("created_at", descending=True)],
        )
        return parse_rows(Order, rows, ORDERS)

    async def _fetch_messages(self) -> List[Message]:
        rows = await self._store.select(
            MESSAGES,
            [booth_messages_filter(self.booth_id)],
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

    def _feed_key(self) -> str:
        return self.booth_id

    def _bindings(self) -> Sequence[Binding]:
        return [
            (Topic(BOOTHS, Eq("id", self.booth_id)), self._reloader("booth")),
            (Topic(PRODUCTS, Eq("booth_id", self.booth_id)), self._reloader("products")),
            (Topic(ORDERS, Eq("booth_id", self.booth_id)), self._reloader("orders")),
            # Broadcasts carry no booth ID, so the whole table is watched
            (Topic(MESSAGES), self._reloader("messages")),
        ]

    # Products

    async def create_product(self, payload: ProductCreate) -> Product:
        """Add a product to this booth; payload.booth_id is replaced by the shown booth."""
        row = payload.to_row()
        row["booth_id"] = self.booth_id
        rows = await self._store.insert(PRODUCTS, [row])
        await self._reload_after_write(["products"])
        return parse_row(Product, rows[0], PRODUCTS)

    async def update_product(self, product_id: str, payload: ProductUpdate) -> Product:
        rows = await self._store.update(
            PRODUCTS,
            payload.to_row(exclude_unset=True),
            [Eq("id", product_id), Eq("booth_id", self.booth_id)],
        )
        if not rows:
            raise NotFoundError(PRODUCTS, product_id)
        await self._reload_after_write(["products"])
        return parse_row(Product, rows[0], PRODUCTS)

    async def delete_product(self, product_id: str, confirm: Optional[Confirm]) -> bool:
        product = next((p for p in self.products if p.id == product_id), None)
        label = product.name if product else "this product"
        if not self._confirmed(confirm, f"Delete {label}?"):
            return False
        await self._delete_cascade(
            [
                (ORDERS, [Eq("product_id", product_id)]),
                (PRODUCTS, [Eq("id", product_id), Eq("booth_id", self.booth_id)]),
            ],
            reload=["products", "orders"],
        )
        return True

    # Orders and messages

    async def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        order = await self._change_order_status(order_id, status)
        await self._reload_after_write(["orders"])
        return order

    async def send_message(self, text: str) -> Message:
        payload = MessageCreate(from_user_id=self.account.id, to_booth_id=self.booth_id, message=text)
        rows = await self._store.insert(MESSAGES, [payload.to_row()])
        await self._reload_after_write(["messages"])
        return parse_row(Message, rows[0], MESSAGES)
