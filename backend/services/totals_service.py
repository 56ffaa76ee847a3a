"""
Totals service — prices a storefront cart.

Pure and deterministic: no I/O, no database access. Canvases are priced by
category; everything else is priced from the line's own unit price.

Pricing table (ILS):
    standard  1 → 220, 2 → 400, 3 → 550, then +180 per additional canvas
    pair      390 per set
    triple    550 per set
    shipping  free
"""
from typing import Iterable

from domain.constants import (
    PAIR_UNIT_PRICE,
    SHIPPING_FEE,
    STANDARD_EXTRA_UNIT_PRICE,
    STANDARD_TIER_PRICES,
    TRIPLE_UNIT_PRICE,
)
from domain.enums import CartCategory
from models import CartItem, Totals


def standard_subtotal(qty: int) -> float:
    """Bulk step price for ``qty`` standard canvases."""
    if qty <= 0:
        return 0
    if qty in STANDARD_TIER_PRICES:
        return STANDARD_TIER_PRICES[qty]
    top = max(STANDARD_TIER_PRICES)
    return STANDARD_TIER_PRICES[top] + (qty - top) * STANDARD_EXTRA_UNIT_PRICE


def compute_totals(cart: Iterable[CartItem]) -> Totals:
    standard_qty = pair_qty = triple_qty = 0
    other = 0.0

    for item in cart:
        category = item.resolved_category
        if category is CartCategory.STANDARD:
            standard_qty += item.quantity
        elif category is CartCategory.PAIR:
            pair_qty += item.quantity
        elif category is CartCategory.TRIPLE:
            triple_qty += item.quantity
        else:
            other += item.price * item.quantity

    other = round(other, 2)
    standard = standard_subtotal(standard_qty)
    pair = pair_qty * PAIR_UNIT_PRICE
    triple = triple_qty * TRIPLE_UNIT_PRICE
    subtotal = standard + pair + triple + other

    return Totals(
        standard_qty=standard_qty,
        pair_qty=pair_qty,
        triple_qty=triple_qty,
        standard_subtotal=standard,
        pair_subtotal=pair,
        triple_subtotal=triple,
        other_subtotal=other,
        subtotal=subtotal,
        shipping=SHIPPING_FEE,
        total=subtotal + SHIPPING_FEE,
    )


def to_minor_units(amount: float) -> int:
    """Decimal shekels → agorot, as the gateway's Amount field expects."""
    return int(round(amount * 100))
