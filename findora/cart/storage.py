"""Durable cart storage: the serialized item list under one named record."""
import json
from typing import Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from findora.db import get_redis_sync, RedisKeys, TTL
from findora.logging import get_logger, sanitize_string_for_logging
from .config import CartSettings
from .models import CartItem
from .pricing import compute_subtotal
from .schemas import cart_record_adapter

logger = get_logger(__name__)


class DurableStore(Protocol):
    """Client-scoped key/value store holding serialized strings."""

    def read(self, key: str) -> Optional[str]:
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store for development or when Redis is not configured."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisStore:
    """Upstash Redis store; every write renews the cart TTL."""

    def __init__(self, client=None, ttl_seconds: int = TTL.CART):
        self._redis = client  # Lazy initialization
        self.ttl = ttl_seconds

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_sync()
        return self._redis

    def read(self, key: str) -> Optional[str]:
        return self.redis.get(key)

    def write(self, key: str, value: str) -> None:
        self.redis.set(key, value, ex=self.ttl)

    def delete(self, key: str) -> None:
        self.redis.delete(key)


class CorruptCartRecord(ValueError):
    """Raised by decode_items for a record that must be discarded."""


def encode_items(items: Sequence[CartItem]) -> str:
    return json.dumps([item.to_dict() for item in items])


def decode_items(raw: str) -> List[CartItem]:
    """
    Parse and validate a stored record.

    Raises:
        CorruptCartRecord: malformed JSON, not an array, an entry failing the
            CartItem shape, duplicate line ids, or amounts too large to price
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise CorruptCartRecord(f"invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise CorruptCartRecord(f"expected a list, got {type(data).__name__}")

    try:
        records = cart_record_adapter.validate_python(data)
    except ValidationError as e:
        raise CorruptCartRecord(f"{e.error_count()} invalid field(s)") from e

    ids = [record.id for record in records]
    if len(ids) != len(set(ids)):
        raise CorruptCartRecord("duplicate line ids")

    items = [record.to_cart_item() for record in records]
    try:
        compute_subtotal(items)
    except ArithmeticError as e:
        raise CorruptCartRecord(f"amounts out of range: {e!r}") from e
    return items


class CartStorage:
    """
    Binds a DurableStore to the cart's record key.

    Neither method raises: a failed load yields an empty cart and a failed
    save leaves the in-memory cart as the only copy.
    """

    def __init__(self, store: DurableStore, key: str):
        self.store = store
        self.key = key

    def load_items(self) -> List[CartItem]:
        try:
            raw = self.store.read(self.key)
        except Exception as e:
            logger.error(f"Failed to read cart record {sanitize_string_for_logging(self.key, 80)}: {e}")
            return []

        if not raw:
            return []

        try:
            return decode_items(raw)
        except CorruptCartRecord as e:
            # Corrupted data - discard it and start empty
            logger.warning(f"Discarding corrupted cart record {sanitize_string_for_logging(self.key, 80)}: {e}")
            self.discard()
            return []

    def save_items(self, items: Sequence[CartItem]) -> bool:
        try:
            self.store.write(self.key, encode_items(items))
            return True
        except Exception as e:
            logger.error(f"Failed to save cart record {sanitize_string_for_logging(self.key, 80)}: {e}")
            return False

    def discard(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to delete cart record {sanitize_string_for_logging(self.key, 80)}: {e}")


def build_storage(settings: CartSettings, session_id: Optional[str] = None) -> CartStorage:
    """
    Storage for one cart.

    With the redis backend each session gets its own `cart:{session_id}`
    record. If Redis is not configured the cart falls back to memory.
    """
    if settings.storage_backend == "redis":
        try:
            client = get_redis_sync()
        except ValueError as e:
            logger.warning(f"Redis unavailable ({e}). Using in-memory cart storage.")
        else:
            key = RedisKeys.cart_key(session_id) if session_id else settings.storage_key
            return CartStorage(RedisStore(client), key)

    key = f"{settings.storage_key}:{session_id}" if session_id else settings.storage_key
    return CartStorage(MemoryStore(), key)
