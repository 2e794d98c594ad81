"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

from findora.services.money import to_decimal, round_money, multiply, subtract, ZERO
from .config import DEFAULT_LOW_STOCK_THRESHOLD

MAX_LINE_QUANTITY = 100000


@dataclass(frozen=True)
class SellerInfo:
    """Seller shown next to a cart line."""
    id: str
    business_name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "businessName": self.business_name}

    @classmethod
    def from_dict(cls, data: dict) -> "SellerInfo":
        return cls(id=data["id"], business_name=data["businessName"])


@dataclass(frozen=True)
class VariantInfo:
    """Variant (size, color, ...) distinguishing two lines of one product."""
    id: str
    name: str
    value: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "VariantInfo":
        return cls(id=data["id"], name=data["name"], value=data["value"])


@dataclass(frozen=True)
class CartItem:
    """
    Single line in the cart.

    `price` and `max_quantity` are captured from the catalog when the line
    is added; `compare_at_price` is display-only and never enters totals.
    """
    id: str
    product_id: str
    name: str
    slug: str
    price: Decimal
    max_quantity: int
    quantity: int = 1
    compare_at_price: Optional[Decimal] = None
    image: Optional[str] = None
    seller: Optional[SellerInfo] = None
    variant: Optional[VariantInfo] = None

    def __post_init__(self):
        # Normalize numeric fields
        object.__setattr__(self, "price", to_decimal(self.price))
        if self.compare_at_price is not None:
            object.__setattr__(self, "compare_at_price", to_decimal(self.compare_at_price))

    @property
    def line_total(self) -> Decimal:
        """Price for all units of this line."""
        return round_money(multiply(self.price, self.quantity))

    @property
    def is_saturated(self) -> bool:
        return self.quantity >= self.max_quantity

    @property
    def savings(self) -> Decimal:
        """Strikethrough savings for display; zero without a higher compare-at price."""
        if self.compare_at_price is None or self.compare_at_price <= self.price:
            return round_money(ZERO)
        return round_money(multiply(subtract(self.compare_at_price, self.price), self.quantity))

    def is_low_stock(self, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> bool:
        """True when only a handful of units are left ("Only 3 left in stock!")."""
        return 0 < self.max_quantity <= threshold

    def to_dict(self) -> dict:
        """Convert to the camelCase record kept in the durable store."""
        data = {
            "id": self.id,
            "productId": self.product_id,
            "name": self.name,
            "slug": self.slug,
            "price": str(self.price),
            "quantity": self.quantity,
            "maxQuantity": self.max_quantity,
        }
        if self.compare_at_price is not None:
            data["compareAtPrice"] = str(self.compare_at_price)
        if self.image is not None:
            data["image"] = self.image
        if self.seller is not None:
            data["seller"] = self.seller.to_dict()
        if self.variant is not None:
            data["variant"] = self.variant.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Create from a stored record (see schemas.CartItemRecord for validation)."""
        compare_at = data.get("compareAtPrice")
        seller = data.get("seller")
        variant = data.get("variant")
        return cls(
            id=data["id"],
            product_id=data["productId"],
            name=data["name"],
            slug=data["slug"],
            price=to_decimal(data["price"]),
            quantity=int(data["quantity"]),
            max_quantity=int(data["maxQuantity"]),
            compare_at_price=to_decimal(compare_at) if compare_at is not None else None,
            image=data.get("image"),
            seller=SellerInfo.from_dict(seller) if seller else None,
            variant=VariantInfo.from_dict(variant) if variant else None,
        )


def _zero() -> Decimal:
    return Decimal("0.00")


@dataclass(frozen=True)
class CartState:
    """
    Immutable cart snapshot.

    Everything but `items`, `is_open` and the two policy inputs (`shipping`,
    `discount`) is derived by pricing.recompute and must never be set by hand.
    """
    items: Tuple[CartItem, ...] = ()
    is_open: bool = False
    total_items: int = 0
    subtotal: Decimal = field(default_factory=_zero)
    tax: Decimal = field(default_factory=_zero)
    shipping: Decimal = field(default_factory=_zero)
    discount: Decimal = field(default_factory=_zero)
    discount_code: Optional[str] = None
    total_price: Decimal = field(default_factory=_zero)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, line_id: str) -> Optional[CartItem]:
        """Line with the given id, if present."""
        return next((item for item in self.items if item.id == line_id), None)

    def items_to_dicts(self) -> list:
        return [item.to_dict() for item in self.items]
