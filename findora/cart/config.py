"""Cart pricing and storage configuration."""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from findora.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_FREE_SHIPPING_THRESHOLD = Decimal("50")
DEFAULT_FLAT_SHIPPING_RATE = Decimal("9.99")
DEFAULT_LOW_STOCK_THRESHOLD = 5
DEFAULT_STORAGE_KEY = "findora-cart"

STORAGE_BACKENDS = ("memory", "redis")


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default
    if not value.is_finite() or value < 0:
        logger.warning(f"Out of range {name}={raw!r}, using {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class CartSettings:
    """
    Pricing policy and storage settings for a cart engine.

    Defaults match the storefront: 8% tax, free shipping from $50,
    $9.99 flat shipping below that.
    """
    tax_rate: Decimal = DEFAULT_TAX_RATE
    free_shipping_threshold: Decimal = DEFAULT_FREE_SHIPPING_THRESHOLD
    flat_shipping_rate: Decimal = DEFAULT_FLAT_SHIPPING_RATE
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    storage_key: str = DEFAULT_STORAGE_KEY
    storage_backend: str = "memory"

    @classmethod
    def from_env(cls) -> "CartSettings":
        """Build settings from CART_* environment variables."""
        backend = os.environ.get("CART_STORAGE_BACKEND", "memory").lower()
        if backend not in STORAGE_BACKENDS:
            logger.warning(f"Unknown CART_STORAGE_BACKEND={backend!r}, using memory")
            backend = "memory"

        return cls(
            tax_rate=_env_decimal("CART_TAX_RATE", DEFAULT_TAX_RATE),
            free_shipping_threshold=_env_decimal(
                "CART_FREE_SHIPPING_THRESHOLD", DEFAULT_FREE_SHIPPING_THRESHOLD
            ),
            flat_shipping_rate=_env_decimal("CART_FLAT_SHIPPING_RATE", DEFAULT_FLAT_SHIPPING_RATE),
            low_stock_threshold=_env_int("CART_LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK_THRESHOLD),
            storage_key=os.environ.get("CART_STORAGE_KEY") or DEFAULT_STORAGE_KEY,
            storage_backend=backend,
        )
