"""Cart package: state machine, pricing, storage, and engine facade."""
from .catalog import AdjustmentKind, CatalogListing, CatalogLookup, LineAdjustment
from .config import CartSettings
from .models import CartItem, CartState, SellerInfo, VariantInfo
from .notifications import (
    CartNotification,
    LoggingNotificationSink,
    NotificationKind,
    QueueNotificationSink,
)
from .pricing import FreeShippingProgress
from .service import CartEngine
from .storage import CartStorage, MemoryStore, RedisStore, build_storage

__all__ = [
    "AdjustmentKind",
    "CartEngine",
    "CartItem",
    "CartNotification",
    "CartSettings",
    "CartState",
    "CartStorage",
    "CatalogListing",
    "CatalogLookup",
    "FreeShippingProgress",
    "LineAdjustment",
    "LoggingNotificationSink",
    "MemoryStore",
    "NotificationKind",
    "QueueNotificationSink",
    "RedisStore",
    "SellerInfo",
    "VariantInfo",
    "build_storage",
]
