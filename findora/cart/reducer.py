"""
Cart reducer - pure transitions over CartState.

reduce(state, command, settings) returns the next state plus the effects
(notifications, persistence writes) the engine must run once the new state
is committed. Nothing in this module performs I/O.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

from findora.services.money import clamp_non_negative, format_money, round_money, to_decimal, ZERO
from . import notifications
from .catalog import AdjustmentKind, CatalogListing, LineAdjustment
from .config import CartSettings
from .models import CartItem, CartState
from .notifications import CartNotification
from .pricing import recompute


# ============================================================
# Commands
# ============================================================

@dataclass(frozen=True)
class AddItem:
    item: CartItem  # item.quantity is ignored; `quantity` is what gets added
    quantity: int = 1


@dataclass(frozen=True)
class RemoveItem:
    line_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    line_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class ToggleCart:
    pass


@dataclass(frozen=True)
class OpenCart:
    pass


@dataclass(frozen=True)
class CloseCart:
    pass


@dataclass(frozen=True)
class UpdateShipping:
    amount: Decimal


@dataclass(frozen=True)
class ApplyDiscount:
    amount: Decimal
    code: Optional[str] = None


@dataclass(frozen=True)
class LoadItems:
    items: Tuple[CartItem, ...]


@dataclass(frozen=True)
class RevalidateLines:
    # product_id -> current listing, None when the product no longer exists.
    # Products missing from the mapping are left untouched.
    listings: Mapping[str, Optional[CatalogListing]]


Command = Union[
    AddItem, RemoveItem, UpdateQuantity, ClearCart, ToggleCart, OpenCart,
    CloseCart, UpdateShipping, ApplyDiscount, LoadItems, RevalidateLines,
]


# ============================================================
# Effects
# ============================================================

@dataclass(frozen=True)
class Notify:
    notification: CartNotification


@dataclass(frozen=True)
class PersistItems:
    items: Tuple[CartItem, ...]


Effect = Union[Notify, PersistItems]


@dataclass(frozen=True)
class Transition:
    state: CartState
    effects: Tuple[Effect, ...] = ()
    adjustments: Tuple[LineAdjustment, ...] = ()


# ============================================================
# Handlers
# ============================================================

def _with_items(state: CartState, items: Tuple[CartItem, ...]) -> CartState:
    # An emptied cart falls back to the zero-shipping baseline
    if not items:
        return replace(state, items=items, shipping=round_money(ZERO))
    return replace(state, items=items)


def _replace_line(items: Tuple[CartItem, ...], line: CartItem) -> Tuple[CartItem, ...]:
    return tuple(line if item.id == line.id else item for item in items)


def _add_item(state: CartState, command: AddItem, settings: CartSettings) -> Transition:
    item = command.item
    requested = command.quantity
    if requested < 1:
        return Transition(state)

    existing = state.find(item.id)

    if existing is None:
        if item.max_quantity < 1:
            return Transition(state, (Notify(notifications.max_quantity_reached(item.name, 0)),))
        quantity = min(requested, item.max_quantity)
        items = state.items + (replace(item, quantity=quantity),)
        added, limit, name = quantity, item.max_quantity, item.name
    else:
        quantity = min(existing.quantity + requested, existing.max_quantity)
        if quantity == existing.quantity:
            # Saturated: nothing changes but the user is told why
            notification = notifications.max_quantity_reached(existing.name, existing.max_quantity)
            return Transition(state, (Notify(notification),))
        items = _replace_line(state.items, replace(existing, quantity=quantity))
        added, limit, name = quantity - existing.quantity, existing.max_quantity, existing.name

    new_state = recompute(_with_items(state, items), settings)
    effects = [Notify(notifications.item_added(name, added))]
    if added < requested:
        effects.append(Notify(notifications.max_quantity_reached(name, limit)))
    effects.append(PersistItems(new_state.items))
    return Transition(new_state, tuple(effects))


def _remove_item(state: CartState, command: RemoveItem, settings: CartSettings) -> Transition:
    existing = state.find(command.line_id)
    if existing is None:
        return Transition(state)

    items = tuple(item for item in state.items if item.id != command.line_id)
    new_state = recompute(_with_items(state, items), settings)
    return Transition(
        new_state,
        (Notify(notifications.item_removed(existing.name)), PersistItems(new_state.items)),
    )


def _update_quantity(state: CartState, command: UpdateQuantity, settings: CartSettings) -> Transition:
    if command.quantity <= 0:
        return _remove_item(state, RemoveItem(command.line_id), settings)

    existing = state.find(command.line_id)
    if existing is None:
        return Transition(state)

    quantity = min(command.quantity, existing.max_quantity)
    effects = []
    if command.quantity > existing.max_quantity:
        effects.append(Notify(notifications.max_quantity_reached(existing.name, existing.max_quantity)))
    if quantity == existing.quantity:
        return Transition(state, tuple(effects))

    items = _replace_line(state.items, replace(existing, quantity=quantity))
    new_state = recompute(_with_items(state, items), settings)
    effects.append(PersistItems(new_state.items))
    return Transition(new_state, tuple(effects))


def _clear_cart(state: CartState, command: ClearCart, settings: CartSettings) -> Transition:
    already_clear = (
        state.is_empty
        and state.discount == ZERO
        and state.discount_code is None
        and state.shipping == ZERO
    )
    if already_clear:
        return Transition(state)

    cleared = replace(
        state,
        items=(),
        shipping=round_money(ZERO),
        discount=round_money(ZERO),
        discount_code=None,
    )
    new_state = recompute(cleared, settings)
    if not state.items:
        # Only a discount or shipping amount was reset; nothing to announce
        return Transition(new_state)
    return Transition(new_state, (Notify(notifications.cart_cleared()), PersistItems(())))


def _toggle_cart(state: CartState, command: ToggleCart, settings: CartSettings) -> Transition:
    return Transition(replace(state, is_open=not state.is_open))


def _open_cart(state: CartState, command: OpenCart, settings: CartSettings) -> Transition:
    return Transition(replace(state, is_open=True))


def _close_cart(state: CartState, command: CloseCart, settings: CartSettings) -> Transition:
    return Transition(replace(state, is_open=False))


def _update_shipping(state: CartState, command: UpdateShipping, settings: CartSettings) -> Transition:
    shipping = round_money(clamp_non_negative(command.amount))
    return Transition(recompute(replace(state, shipping=shipping), settings))


def _apply_discount(state: CartState, command: ApplyDiscount, settings: CartSettings) -> Transition:
    # Negative discounts would surcharge the order; treat them as no discount
    discount = round_money(clamp_non_negative(command.amount))
    code = command.code if discount > ZERO else None
    return Transition(recompute(replace(state, discount=discount, discount_code=code), settings))


def _load_items(state: CartState, command: LoadItems, settings: CartSettings) -> Transition:
    return Transition(recompute(_with_items(state, tuple(command.items)), settings))


def _revalidate_lines(state: CartState, command: RevalidateLines, settings: CartSettings) -> Transition:
    items = []
    effects = []
    adjustments = []

    for line in state.items:
        if line.product_id not in command.listings:
            items.append(line)
            continue

        listing = command.listings[line.product_id]
        if listing is None or listing.available_stock < 1:
            adjustments.append(LineAdjustment(line.id, line.name, AdjustmentKind.REMOVED))
            effects.append(Notify(notifications.item_removed(line.name)))
            continue

        updated = replace(
            line,
            price=to_decimal(listing.price),
            compare_at_price=listing.compare_at_price,
            max_quantity=listing.available_stock,
            quantity=min(line.quantity, listing.available_stock),
        )
        if updated.quantity < line.quantity:
            adjustments.append(
                LineAdjustment(
                    line.id, line.name, AdjustmentKind.QUANTITY_REDUCED,
                    old_value=str(line.quantity), new_value=str(updated.quantity),
                )
            )
            effects.append(Notify(notifications.max_quantity_reached(line.name, updated.max_quantity)))
        if updated.price != line.price:
            adjustments.append(
                LineAdjustment(
                    line.id, line.name, AdjustmentKind.PRICE_CHANGED,
                    old_value=format_money(line.price), new_value=format_money(updated.price),
                )
            )
        items.append(updated)

    new_items = tuple(items)
    if new_items == state.items:
        return Transition(state)

    new_state = recompute(_with_items(state, new_items), settings)
    effects.append(PersistItems(new_state.items))
    return Transition(new_state, tuple(effects), tuple(adjustments))


_HANDLERS: Dict[type, Callable[[CartState, Command, CartSettings], Transition]] = {
    AddItem: _add_item,
    RemoveItem: _remove_item,
    UpdateQuantity: _update_quantity,
    ClearCart: _clear_cart,
    ToggleCart: _toggle_cart,
    OpenCart: _open_cart,
    CloseCart: _close_cart,
    UpdateShipping: _update_shipping,
    ApplyDiscount: _apply_discount,
    LoadItems: _load_items,
    RevalidateLines: _revalidate_lines,
}


def reduce(state: CartState, command: Command, settings: CartSettings) -> Transition:
    """Apply one command. Unknown command types are a programming error."""
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported cart command: {type(command).__name__}")
    return handler(state, command, settings)
