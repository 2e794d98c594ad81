"""Cart engine: owns the cart state and runs the reducer's effects."""
import threading
from typing import Dict, List, Optional, Sequence

from findora.logging import get_logger, sanitize_string_for_logging
from findora.services.money import format_money, to_float
from .catalog import CatalogListing, CatalogLookup, LineAdjustment
from .config import CartSettings
from .models import CartItem, CartState
from .notifications import CartNotification, LoggingNotificationSink, NotificationSink
from .pricing import FreeShippingProgress, free_shipping_progress
from .reducer import (
    AddItem,
    ApplyDiscount,
    ClearCart,
    CloseCart,
    Command,
    Effect,
    LoadItems,
    Notify,
    OpenCart,
    PersistItems,
    RemoveItem,
    RevalidateLines,
    ToggleCart,
    Transition,
    UpdateQuantity,
    UpdateShipping,
    reduce,
)
from .storage import CartStorage, build_storage

logger = get_logger(__name__)


class CartEngine:
    """
    Single owner of one cart.

    Every command goes through the pure reducer; the resulting state is
    committed first, then notifications and persistence writes run. None
    of the commands raise: unknown lines are ignored, over-limit quantities
    saturate, and storage or notification failures are only logged.

    Usage:
        engine = CartEngine(storage=CartStorage(MemoryStore(), "findora-cart"))
        engine.add_item(item, quantity=2)
        summary = engine.get_cart_summary()
    """

    def __init__(
        self,
        storage: Optional[CartStorage] = None,
        notifier: Optional[NotificationSink] = None,
        settings: Optional[CartSettings] = None,
        restore: bool = True,
    ):
        self.settings = settings if settings is not None else CartSettings.from_env()
        self.storage = storage if storage is not None else build_storage(self.settings)
        # An empty QueueNotificationSink is falsy, so compare against None
        self.notifier = notifier if notifier is not None else LoggingNotificationSink()
        self._state = CartState()
        self._lock = threading.RLock()
        if restore:
            self.restore()

    @property
    def state(self) -> CartState:
        return self._state

    def snapshot(self) -> CartState:
        """Read-only view for checkout; CartState is immutable."""
        return self._state

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> Transition:
        """Apply one command. Commands from concurrent callers are serialized."""
        with self._lock:
            transition = reduce(self._state, command, self.settings)
            self._state = transition.state
            self._run_effects(transition.effects)
        return transition

    def _run_effects(self, effects: Sequence[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Notify):
                self._notify(effect.notification)
            elif isinstance(effect, PersistItems):
                self.storage.save_items(effect.items)

    def _notify(self, notification: CartNotification) -> None:
        try:
            self.notifier.notify(notification)
        except Exception as e:
            logger.warning(f"Notification sink failed for {notification.kind.value}: {e}")

    def restore(self) -> CartState:
        """Replay the persisted item list, if any."""
        items = self.storage.load_items()
        if items:
            self.load_items(items)
            logger.info(f"Restored cart with {len(items)} line(s)")
        return self._state

    def load_items(self, items: Sequence[CartItem]) -> CartState:
        """Replace the item list without notifying or writing back."""
        return self.dispatch(LoadItems(tuple(items))).state

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_item(self, item: CartItem, quantity: int = 1) -> CartState:
        return self.dispatch(AddItem(item, quantity)).state

    def remove_item(self, line_id: str) -> CartState:
        return self.dispatch(RemoveItem(line_id)).state

    def update_quantity(self, line_id: str, quantity: int) -> CartState:
        return self.dispatch(UpdateQuantity(line_id, quantity)).state

    def clear_cart(self) -> CartState:
        return self.dispatch(ClearCart()).state

    def toggle_cart(self) -> CartState:
        return self.dispatch(ToggleCart()).state

    def open_cart(self) -> CartState:
        return self.dispatch(OpenCart()).state

    def close_cart(self) -> CartState:
        return self.dispatch(CloseCart()).state

    def update_shipping(self, amount) -> CartState:
        return self.dispatch(UpdateShipping(amount)).state

    def apply_discount(self, amount, code: Optional[str] = None) -> CartState:
        """Apply an externally validated discount; the code is kept for auditing."""
        state = self.dispatch(ApplyDiscount(amount, code)).state
        if code:
            logger.info(f"Discount {format_money(state.discount)} applied with code {sanitize_string_for_logging(code, 20)}")
        return state

    def revalidate(self, catalog: CatalogLookup) -> List[LineAdjustment]:
        """
        Refresh price and stock of every line from the catalog.

        Call before checkout. Lines whose product disappeared or sold out are
        removed; quantities above the current stock are reduced.

        Args:
            catalog: Catalog lookup; a lookup that raises leaves that product's
                lines untouched

        Returns:
            Adjustments made, empty if the cart was already current
        """
        listings: Dict[str, Optional[CatalogListing]] = {}
        for product_id in {item.product_id for item in self._state.items}:
            try:
                listings[product_id] = catalog.get_listing(product_id)
            except Exception as e:
                logger.warning(f"Catalog lookup failed for {product_id}: {e}")

        transition = self.dispatch(RevalidateLines(listings))
        if transition.adjustments:
            logger.info(f"Revalidation adjusted {len(transition.adjustments)} cart line(s)")
        return list(transition.adjustments)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_item_count(self, product_id: str) -> int:
        """Units of a product across all of its lines (variants included)."""
        return sum(item.quantity for item in self._state.items if item.product_id == product_id)

    def is_in_cart(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self._state.items)

    def get_line_quantity(self, line_id: str) -> int:
        line = self._state.find(line_id)
        return line.quantity if line else 0

    def get_free_shipping_progress(self) -> FreeShippingProgress:
        return free_shipping_progress(self._state.subtotal, self.settings)

    def get_cart_summary(self) -> dict:
        """Cart snapshot with float amounts, for checkout and API consumers."""
        state = self._state
        progress = free_shipping_progress(state.subtotal, self.settings)
        return {
            "is_empty": state.is_empty,
            "is_open": state.is_open,
            "total_items": state.total_items,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "name": item.name,
                    "slug": item.slug,
                    "quantity": item.quantity,
                    "max_quantity": item.max_quantity,
                    "price": to_float(item.price),
                    "compare_at_price": (
                        to_float(item.compare_at_price) if item.compare_at_price is not None else None
                    ),
                    "line_total": to_float(item.line_total),
                    "savings": to_float(item.savings),
                    "image": item.image,
                    "seller": item.seller.to_dict() if item.seller else None,
                    "variant": item.variant.to_dict() if item.variant else None,
                    "is_low_stock": item.is_low_stock(self.settings.low_stock_threshold),
                    "is_saturated": item.is_saturated,
                }
                for item in state.items
            ],
            "subtotal": to_float(state.subtotal),
            "tax": to_float(state.tax),
            "shipping": to_float(state.shipping),
            "discount": to_float(state.discount),
            "discount_code": state.discount_code,
            "total_price": to_float(state.total_price),
            "free_shipping": {
                "current": to_float(progress.current),
                "target": to_float(progress.target),
                "remaining": to_float(progress.remaining),
                "qualified": progress.qualified,
            },
        }
