"""
Findora Core Module

This package contains the cart engine and its infrastructure:
- cart: cart state machine, pricing, persistence, notifications
- db: Upstash Redis client for the durable cart store
- services.money: Decimal helpers for every monetary value
- routers: FastAPI adapter that lets a UI drive a cart session

Note: Imports are lazy so that importing the engine never requires
Redis credentials.
"""

__all__ = [
    "CartEngine",
    "get_redis_sync",
]


def __getattr__(name):
    """Lazy attribute access for clean serverless loading."""
    if name == "CartEngine":
        from findora.cart import CartEngine
        return CartEngine
    elif name == "get_redis_sync":
        from findora.db import get_redis_sync
        return get_redis_sync
    raise AttributeError(f"module 'findora' has no attribute '{name}'")
