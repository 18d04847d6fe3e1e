"""
Admin dashboard view state
Booth list with notification badges, staff directory and message history.
"""
import logging
from typing import Dict, List, Optional, Sequence

from boothboard.core.exceptions import NotFoundError
from boothboard.schemas.account import Account, Profile, Role
from boothboard.schemas.base import parse_row, parse_rows
from boothboard.schemas.booth import (
    Booth,
    BoothCreate,
    BoothUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)
from boothboard.schemas.message import Message, MessageCreate
from boothboard.schemas.order import Order, OrderStatus
from boothboard.services.change_feed import Binding
from boothboard.services.dashboard import Confirm, Dashboard, Fetch
from boothboard.services.notifications import booth_badges
from boothboard.store.base import (
    BOOTHS,
    MESSAGES,
    ORDERS,
    PRODUCTS,
    PROFILES,
    Eq,
    OrderBy,
    Topic,
)

logger = logging.getLogger(__name__)


class AdminDashboard(Dashboard):
    """
    Admin view over every booth

    Attributes:
        booths: All booths in natural booth_number order
        pending_orders: Orders still waiting for the admin
        out_of_stock: Products flagged out of stock
        messages: Every message, newest first
        staff: Booth staff profiles, for assignment
    """

    owner = "admin"
    SLICES = {
        "booths": list,
        "pending_orders": list,
        "out_of_stock": list,
        "messages": list,
        "staff": list,
    }

    def __init__(self, store, account: Account):
        super().__init__(store)
        self.account = account

    # Derived state

    @property
    def notifications(self) -> Dict[str, int]:
        """Badge count per booth ID; booths without a badge are absent."""
        return booth_badges(self.pending_orders, self.out_of_stock)

    def badge(self, booth_id: str) -> Optional[int]:
        return self.notifications.get(booth_id)

    def unassigned_staff(self) -> List[Profile]:
        assigned = {b.staff_id for b in self.booths if b.staff_id}
        return [p for p in self.staff if p.id not in assigned]

    # Loading

    async def _fetch_booths(self) -> List[Booth]:
        rows = await self._store.select(BOOTHS, order_by=[OrderBy("booth_number")])
        booths = parse_rows(Booth, rows, BOOTHS)
        return sorted(booths, key=lambda b: (b.sort_key, b.booth_number))

    async def _fetch_pending_orders(self) -> List[Order]:
        rows = await self._store.select(
            ORDERS,
            [Eq("status", OrderStatus.PENDING.value)],
            [OrderBy("created_at")],
        )
        return parse_rows(Order, rows, ORDERS)

    async def _fetch_out_of_stock(self) -> List[Product]:
        rows = await self._store.select(PRODUCTS, [Eq("is_out_of_stock", True)])
        return parse_rows(Product, rows, PRODUCTS)

    async def _fetch_messages(self) -> List[Message]:
        rows = await self._store.select(MESSAGES, order_by=[OrderBy("created_at", descending=True)])
        return parse_rows(Message, rows, MESSAGES)

    async def _fetch_staff(self) -> List[Profile]:
        rows = await self._store.select(
            PROFILES, [Eq("role", Role.BOOTH_STAFF.value)], [OrderBy("full_name")]
        )
        return parse_rows(Profile, rows, PROFILES)

    def _fetchers(self) -> Dict[str, Fetch]:
        return {
            "booths": self._fetch_booths,
            "pending_orders": self._fetch_pending_orders,
            "out_of_stock": self._fetch_out_of_stock,
            "messages": self._fetch_messages,
            "staff": self._fetch_staff,
        }

    def _bindings(self) -> Sequence[Binding]:
        return [
            (Topic(BOOTHS), self._reloader("booths")),
            (Topic(ORDERS), self._reloader("pending_orders")),
            (Topic(PRODUCTS), self._reloader("out_of_stock")),
            (Topic(MESSAGES), self._reloader("messages")),
            (Topic(PROFILES), self._reloader("staff")),
        ]

    # Booths

    async def create_booth(self, payload: BoothCreate) -> Booth:
        rows = await self._store.insert(BOOTHS, [payload.to_row()])
        booth = parse_row(Booth, rows[0], BOOTHS)
        logger.info(f"Created booth #{booth.booth_number} {booth.booth_name}")
        await self._reload_after_write(["booths"])
        return booth

    async def update_booth(self, booth_id: str, payload: BoothUpdate) -> Booth:
        """
        Raises:
            NotFoundError: If the booth no longer exists
        """
        patch = payload.to_row(exclude_unset=True)
        if not patch:
            rows = await self._store.select(BOOTHS, [Eq("id", booth_id)])
        else:
            rows = await self._store.update(BOOTHS, patch, [Eq("id", booth_id)])
        if not rows:
            raise NotFoundError(BOOTHS, booth_id)
        await self._reload_after_write(["booths"])
        return parse_row(Booth, rows[0], BOOTHS)

    async def assign_staff(self, booth_id: str, staff_id: Optional[str]) -> Booth:
        """Assign a staff account to a booth, or unassign with None."""
        return await self.update_booth(booth_id, BoothUpdate(staff_id=staff_id))

    async def delete_booth(self, booth_id: str, confirm: Optional[Confirm]) -> bool:
        """
        Delete a booth together with its orders, products and direct messages.

        Args:
            confirm: Called with a prompt; nothing is touched unless it returns True

        Returns:
            True if the booth was deleted, False if the confirmation was declined
        """
        booth = next((b for b in self.booths if b.id == booth_id), None)
        label = f"booth #{booth.booth_number} {booth.booth_name}" if booth else "this booth"
        if not self._confirmed(confirm, f"Delete {label} and all of its products and orders?"):
            return False

        # Children first: the store restricts deletes of referenced booths
        await self._delete_cascade(
            [
                (ORDERS, [Eq("booth_id", booth_id)]),
                (PRODUCTS, [Eq("booth_id", booth_id)]),
                (MESSAGES, [Eq("to_booth_id", booth_id)]),
                (BOOTHS, [Eq("id", booth_id)]),
            ],
            reload=["booths", "pending_orders", "out_of_stock", "messages"],
        )
        logger.info(f"Deleted booth {booth_id}")
        return True

    # Products

    async def create_product(self, payload: ProductCreate) -> Product:
        rows = await self._store.insert(PRODUCTS, [payload.to_row()])
        await self._reload_after_write(["out_of_stock"])
        return parse_row(Product, rows[0], PRODUCTS)

    async def update_product(self, product_id: str, payload: ProductUpdate) -> Product:
        rows = await self._store.update(
            PRODUCTS, payload.to_row(exclude_unset=True), [Eq("id", product_id)]
        )
        if not rows:
            raise NotFoundError(PRODUCTS, product_id)
        await self._reload_after_write(["out_of_stock"])
        return parse_row(Product, rows[0], PRODUCTS)

    async def delete_product(self, product_id: str, confirm: Optional[Confirm]) -> bool:
        if not self._confirmed(confirm, "Delete this product and its restock orders?"):
            return False
        await self._delete_cascade(
            [
                (ORDERS, [Eq("product_id", product_id)]),
                (PRODUCTS, [Eq("id", product_id)]),
            ],
            reload=["out_of_stock", "pending_orders"],
        )
        return True

    # Orders and messages

    async def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        order = await self._change_order_status(order_id, status)
        await self._reload_after_write(["pending_orders"])
        return order

    async def send_message(self, text: str, to_booth_id: Optional[str] = None) -> Message:
        """
        Send a message to one booth, or broadcast to every booth when
        to_booth_id is None.
        """
        payload = MessageCreate(from_user_id=self.account.id, to_booth_id=to_booth_id, message=text)
        rows = await self._store.insert(MESSAGES, [payload.to_row()])
        await self._reload_after_write(["messages"])
        return parse_row(Message, rows[0], MESSAGES)
