"""
Cart Router

Thin HTTP adapter over CartEngine. Each cart session (X-Cart-Session
header) owns one engine; every response carries the cart summary plus the
toast notifications produced since the previous response. A request without
the header starts a new session whose id is returned in the same header.
"""
import re
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response

from findora.cart import CartEngine, CartSettings, QueueNotificationSink, build_storage
from findora.db import TTL
from findora.errors import ERROR_CART_SESSION_INVALID
from findora.logging import get_logger, sanitize_id_for_logging
from findora.services.money import to_float
from .models import (
    AddToCartRequest,
    ApplyDiscountRequest,
    UpdateCartItemRequest,
    UpdateShippingRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])

SESSION_HEADER = "X-Cart-Session"
MAX_SESSIONS = 10000
_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass
class CartSession:
    engine: CartEngine
    notifications: QueueNotificationSink
    # Held for a command plus the response built from it
    lock: threading.Lock = field(default_factory=threading.Lock)
    last_used: float = 0.0


class CartSessionRegistry:
    """
    Creates and keeps one engine per cart session.

    Sessions idle for longer than `idle_ttl` seconds (the Redis cart TTL by
    default) are evicted, and at most `max_sessions` are kept, least
    recently used first out.
    """

    def __init__(
        self,
        settings: Optional[CartSettings] = None,
        max_sessions: int = MAX_SESSIONS,
        idle_ttl: float = TTL.CART,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or CartSettings.from_env()
        self.max_sessions = max_sessions
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: "OrderedDict[str, CartSession]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> CartSession:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)

            session = self._sessions.get(session_id)
            if session is None:
                sink = QueueNotificationSink()
                engine = CartEngine(
                    storage=build_storage(self.settings, session_id),
                    notifier=sink,
                    settings=self.settings,
                )
                session = CartSession(engine=engine, notifications=sink)
                self._sessions[session_id] = session
                logger.info(f"Opened cart session {sanitize_id_for_logging(session_id)}")
                while len(self._sessions) > self.max_sessions:
                    evicted, _ = self._sessions.popitem(last=False)
                    logger.info(f"Evicted cart session {sanitize_id_for_logging(evicted)}")
            else:
                self._sessions.move_to_end(session_id)

            session.last_used = now
            return session

    def _evict_idle(self, now: float) -> None:
        # Ordered by last use, so idle sessions sit at the front
        while self._sessions:
            session_id, session = next(iter(self._sessions.items()))
            if now - session.last_used < self.idle_ttl:
                break
            del self._sessions[session_id]
            logger.info(f"Expired idle cart session {sanitize_id_for_logging(session_id)}")

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[CartSessionRegistry] = None
_registry_lock = threading.Lock()


def get_cart_registry() -> CartSessionRegistry:
    """Get or create the session registry (lazy loaded)."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = CartSessionRegistry()
    return _registry


def get_cart_session(
    response: Response,
    x_cart_session: Optional[str] = Header(None),
    registry: CartSessionRegistry = Depends(get_cart_registry),
) -> CartSession:
    if x_cart_session is None:
        session_id = uuid.uuid4().hex
    elif _SESSION_ID_PATTERN.match(x_cart_session):
        session_id = x_cart_session
    else:
        raise HTTPException(status_code=400, detail=ERROR_CART_SESSION_INVALID)

    response.headers[SESSION_HEADER] = session_id
    return registry.get(session_id)


def _cart_response(session: CartSession, command: Optional[Callable[[CartEngine], object]] = None) -> dict:
    """Run `command` (if any) and build the response under the session lock."""
    with session.lock:
        if command is not None:
            command(session.engine)
        return {
            "cart": session.engine.get_cart_summary(),
            "notifications": [n.to_dict() for n in session.notifications.drain()],
        }


@router.get("")
def get_cart(session: CartSession = Depends(get_cart_session)):
    """Get the cart with derived totals."""
    return _cart_response(session)


@router.post("/items")
def add_to_cart(request: AddToCartRequest, session: CartSession = Depends(get_cart_session)):
    """Add a line (or more units of an existing line)."""
    item = request.to_cart_item()
    return _cart_response(session, lambda engine: engine.add_item(item, request.quantity))


@router.patch("/items/{line_id}")
def update_cart_item(
    line_id: str,
    request: UpdateCartItemRequest,
    session: CartSession = Depends(get_cart_session),
):
    """Set a line's quantity (0 = remove)."""
    return _cart_response(session, lambda engine: engine.update_quantity(line_id, request.quantity))


@router.delete("/items/{line_id}")
def remove_cart_item(line_id: str, session: CartSession = Depends(get_cart_session)):
    """Remove a line; unknown lines are ignored."""
    return _cart_response(session, lambda engine: engine.remove_item(line_id))


@router.delete("")
def clear_cart(session: CartSession = Depends(get_cart_session)):
    return _cart_response(session, CartEngine.clear_cart)


@router.post("/shipping")
def update_shipping(request: UpdateShippingRequest, session: CartSession = Depends(get_cart_session)):
    return _cart_response(session, lambda engine: engine.update_shipping(request.amount))


@router.post("/discount")
def apply_discount(request: ApplyDiscountRequest, session: CartSession = Depends(get_cart_session)):
    """Apply a discount already validated by the promo service."""
    return _cart_response(session, lambda engine: engine.apply_discount(request.amount, request.code))


@router.post("/open")
def open_cart(session: CartSession = Depends(get_cart_session)):
    return _cart_response(session, CartEngine.open_cart)


@router.post("/close")
def close_cart(session: CartSession = Depends(get_cart_session)):
    return _cart_response(session, CartEngine.close_cart)


@router.post("/toggle")
def toggle_cart(session: CartSession = Depends(get_cart_session)):
    return _cart_response(session, CartEngine.toggle_cart)


@router.get("/free-shipping")
def get_free_shipping_progress(session: CartSession = Depends(get_cart_session)):
    """How far the cart is from free shipping."""
    progress = session.engine.get_free_shipping_progress()
    return {
        "current": to_float(progress.current),
        "target": to_float(progress.target),
        "remaining": to_float(progress.remaining),
        "qualified": progress.qualified,
    }
