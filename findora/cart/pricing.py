"""
Derived totals and the shipping policy.

recompute() is the only place cart totals are produced. It runs at the end
of every transition in the reducer, so totals are never stale and never
accumulated incrementally.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable

from findora.services.money import (
    add,
    clamp_non_negative,
    multiply,
    round_money,
    subtract,
    to_decimal,
    ZERO,
)
from .config import CartSettings
from .models import CartItem, CartState


@dataclass(frozen=True)
class FreeShippingProgress:
    current: Decimal
    target: Decimal
    remaining: Decimal
    qualified: bool


def compute_subtotal(items: Iterable[CartItem]) -> Decimal:
    return round_money(sum((item.line_total for item in items), ZERO))


def compute_tax(subtotal: Decimal, settings: CartSettings) -> Decimal:
    return round_money(multiply(subtotal, settings.tax_rate))


def apply_shipping_policy(
    subtotal: Decimal,
    shipping: Decimal,
    has_items: bool,
    settings: CartSettings,
) -> Decimal:
    """
    Free shipping at or above the threshold; flat rate below it.

    The flat rate is only restored when shipping is currently zero, so an
    amount set through update_shipping survives. An empty cart is left
    untouched. Applying the policy twice yields the same value.
    """
    if not has_items:
        return shipping
    if subtotal >= settings.free_shipping_threshold:
        return round_money(ZERO)
    if shipping == ZERO:
        return round_money(settings.flat_shipping_rate)
    return shipping


def compute_total(subtotal: Decimal, tax: Decimal, shipping: Decimal, discount: Decimal) -> Decimal:
    gross = add(add(subtotal, tax), shipping)
    return round_money(clamp_non_negative(subtract(gross, discount)))


def recompute(state: CartState, settings: CartSettings) -> CartState:
    """Return `state` with every derived field rebuilt from items, shipping and discount."""
    subtotal = compute_subtotal(state.items)
    tax = compute_tax(subtotal, settings)
    shipping = apply_shipping_policy(
        subtotal, round_money(state.shipping), bool(state.items), settings
    )
    discount = round_money(state.discount)
    return replace(
        state,
        total_items=sum(item.quantity for item in state.items),
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total_price=compute_total(subtotal, tax, shipping, discount),
    )


def free_shipping_progress(subtotal, settings: CartSettings) -> FreeShippingProgress:
    current = round_money(to_decimal(subtotal))
    target = round_money(settings.free_shipping_threshold)
    return FreeShippingProgress(
        current=current,
        target=target,
        remaining=round_money(clamp_non_negative(subtract(target, current))),
        qualified=current >= target,
    )
