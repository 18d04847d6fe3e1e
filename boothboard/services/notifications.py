"""
Notification aggregation
Pure folds from orders, products and messages into badge counts and
per-booth notification lists. Nothing here is persisted or cached.
"""
from collections import Counter
from typing import Dict, Iterable, List, Optional

from boothboard.schemas.booth import Product
from boothboard.schemas.message import Message
from boothboard.schemas.notification import Notification, NotificationKind
from boothboard.schemas.order import Order


def pending_order_counts(orders: Iterable[Order]) -> Dict[str, int]:
    """
    Count pending orders per booth.

    Returns:
        Mapping of booth_id to the number of orders with status pending
    """
    return dict(Counter(order.booth_id for order in orders if order.is_pending))


def out_of_stock_counts(products: Iterable[Product]) -> Dict[str, int]:
    """
    Count out-of-stock products per booth.
    """
    return dict(Counter(p.booth_id for p in products if p.is_out_of_stock))


def booth_badges(orders: Iterable[Order], products: Iterable[Product]) -> Dict[str, int]:
    """
    Admin badge per booth: pending orders plus out-of-stock products.

    Booths with nothing to report have no entry, so a zero badge is never shown.
    """
    totals = Counter(pending_order_counts(orders))
    totals.update(out_of_stock_counts(products))
    return {booth_id: count for booth_id, count in totals.items() if count > 0}


def visible_messages(messages: Iterable[Message], booth_id: Optional[str]) -> List[Message]:
    """
    Messages visible to a booth, newest first.

    Args:
        messages: Any set of messages
        booth_id: Booth whose view is asking, or None for the admin view
    """
    visible = [m for m in messages if m.is_visible_to(booth_id)]
    return sorted(visible, key=lambda m: m.created_at, reverse=True)


def booth_notifications(
    booth_id: str,
    messages: Iterable[Message],
    orders: Iterable[Order],
    products: Iterable[Product],
) -> List[Notification]:
    """
    Notification list for a booth's staff or detail view.

    Order of display:
    1. Unread messages visible to the booth, newest first
    2. Pending orders for the booth, oldest first
    3. Out-of-stock products for the booth, by name
    """
    items: List[Notification] = []

    for message in visible_messages(messages, booth_id):
        if message.is_read:
            continue
        items.append(Notification(
            kind=NotificationKind.UNREAD_MESSAGE,
            source_id=message.id,
            booth_id=message.to_booth_id,
            text=message.message,
            created_at=message.created_at,
        ))

    pending = sorted(
        (o for o in orders if o.booth_id == booth_id and o.is_pending),
        key=lambda o: o.created_at,
    )
    for order in pending:
        items.append(Notification(
            kind=NotificationKind.PENDING_ORDER,
            source_id=order.id,
            booth_id=order.booth_id,
            text=f"Restock x{order.quantity}" + (f": {order.notes}" if order.notes else ""),
            created_at=order.created_at,
        ))

    empty = sorted(
        (p for p in products if p.booth_id == booth_id and p.is_out_of_stock),
        key=lambda p: p.name.lower(),
    )
    for product in empty:
        items.append(Notification(
            kind=NotificationKind.OUT_OF_STOCK,
            source_id=product.id,
            booth_id=product.booth_id,
            text=f"{product.name} is out of stock",
        ))

    return items
