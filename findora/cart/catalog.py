"""
Catalog boundary.

The engine trusts price and stock captured at add time. Before checkout a
caller can re-read them through a CatalogLookup (see CartEngine.revalidate),
so a long-lived cart does not check out at a stale price or oversell stock.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol

from findora.services.money import to_decimal


@dataclass(frozen=True)
class CatalogListing:
    """Current catalog view of a product."""
    product_id: str
    price: Decimal
    available_stock: int
    compare_at_price: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))
        if self.compare_at_price is not None:
            object.__setattr__(self, "compare_at_price", to_decimal(self.compare_at_price))


class CatalogLookup(Protocol):
    def get_listing(self, product_id: str) -> Optional[CatalogListing]:
        """Return the listing, or None if the product no longer exists."""
        ...


class AdjustmentKind(str, Enum):
    REMOVED = "removed"  # Product gone or out of stock
    QUANTITY_REDUCED = "quantity_reduced"
    PRICE_CHANGED = "price_changed"


@dataclass(frozen=True)
class LineAdjustment:
    """One change applied to a cart line during revalidation."""
    line_id: str
    name: str
    kind: AdjustmentKind
    old_value: Optional[str] = None
    new_value: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "name": self.name,
            "kind": self.kind.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }
