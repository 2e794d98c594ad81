"""
Cart notifications - toast-style feedback for the UI.

The engine only writes to a sink; it never reads notifications back.
"""
from collections import deque
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Deque, List, Optional, Protocol

from findora.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

VIEW_CART_ACTION = "view_cart"


class NotificationKind(str, Enum):
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    CART_CLEARED = "cart_cleared"
    MAX_QUANTITY_REACHED = "max_quantity_reached"


@dataclass(frozen=True)
class CartNotification:
    """One user-facing message, optionally paired with an "open cart" action."""
    kind: NotificationKind
    message: str
    item_name: Optional[str] = None
    quantity: Optional[int] = None
    limit: Optional[int] = None
    action: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def item_added(name: str, quantity: int) -> CartNotification:
    return CartNotification(
        kind=NotificationKind.ITEM_ADDED,
        message=f"Added {quantity} × {name} to cart",
        item_name=name,
        quantity=quantity,
        action=VIEW_CART_ACTION,
    )


def item_removed(name: str) -> CartNotification:
    return CartNotification(
        kind=NotificationKind.ITEM_REMOVED,
        message=f"Removed {name} from cart",
        item_name=name,
    )


def cart_cleared() -> CartNotification:
    return CartNotification(kind=NotificationKind.CART_CLEARED, message="Cart cleared")


def max_quantity_reached(name: str, limit: int) -> CartNotification:
    if limit <= 0:
        message = f"{name} is out of stock"
    else:
        message = f"Maximum quantity reached for {name} ({limit} available)"
    return CartNotification(
        kind=NotificationKind.MAX_QUANTITY_REACHED,
        message=message,
        item_name=name,
        limit=limit,
        action=VIEW_CART_ACTION,
    )


class NotificationSink(Protocol):
    def notify(self, notification: CartNotification) -> None:
        ...


class LoggingNotificationSink:
    """Writes notifications to the log. Default sink for headless engines."""

    def notify(self, notification: CartNotification) -> None:
        logger.info(
            f"[{notification.kind.value}] {sanitize_string_for_logging(notification.message, 120)}"
        )


class QueueNotificationSink:
    """
    Buffers notifications until the UI drains them.

    The HTTP layer attaches drained notifications to each cart response.
    Oldest messages are dropped once `maxlen` is exceeded.
    """

    def __init__(self, maxlen: int = 50):
        self._pending: Deque[CartNotification] = deque(maxlen=maxlen)

    def notify(self, notification: CartNotification) -> None:
        self._pending.append(notification)

    def drain(self) -> List[CartNotification]:
        drained = list(self._pending)
        self._pending.clear()
        return drained

    def __len__(self) -> int:
        return len(self._pending)
