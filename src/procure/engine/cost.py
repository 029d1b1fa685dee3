"""Adjusted cost of one requested item at one shop."""

from datetime import datetime

from procure.engine.models import (
    Availability,
    ComparisonCell,
    RequestedItem,
    Shop,
    ShopListing,
    Tier,
)


def unit_price_for(
    listing: ShopListing, effective_quantity: float, now: datetime
) -> tuple[float, bool]:
    """Return ``(unit_price, promo_applied)`` for the given quantity and time.

    An active promotion wins outright.  Otherwise the highest bulk tier whose
    ``min_qty`` is reached applies, falling back to the list price.
    """
    if (
        listing.promo_price is not None
        and listing.promo_window is not None
        and listing.promo_window.contains(now)
    ):
        return listing.promo_price, True

    price = listing.unit_price
    for tier in listing.bulk_tiers:
        if tier.min_qty <= effective_quantity:
            price = tier.price
        else:
            break
    return price, False


def stock_status(listing: ShopListing, effective_quantity: float) -> Availability:
    if not listing.in_stock:
        return Availability.OUT_OF_STOCK
    if (
        listing.stock_quantity is not None
        and listing.stock_quantity < effective_quantity
    ):
        return Availability.INSUFFICIENT_STOCK
    if effective_quantity < listing.min_order_qty:
        return Availability.INSUFFICIENT_STOCK
    if listing.max_order_qty is not None and effective_quantity > listing.max_order_qty:
        return Availability.INSUFFICIENT_STOCK
    return Availability.AVAILABLE


def calculate_cost(
    item: RequestedItem,
    listing: ShopListing | None,
    shop: Shop,
    *,
    now: datetime,
    distance_km: float | None = None,
    include_delivery: bool = False,
    require_delivery: bool = False,
) -> ComparisonCell:
    """Price ``item`` at ``shop``.

    Never raises: a missing listing yields a ``no_listing`` cell, and stock or
    delivery problems still carry a cost for display but are not selectable.
    The returned cell's tier is provisional; the matrix builder assigns the
    final one.
    """
    if listing is None:
        return ComparisonCell(
            variant_id=item.variant_id,
            shop_id=shop.id,
            distance_km=distance_km,
            availability=Availability.NO_LISTING,
        )

    qty = item.effective_quantity
    unit_price, promo_applied = unit_price_for(listing, qty, now)
    availability = stock_status(listing, qty)
    if (
        availability == Availability.AVAILABLE
        and require_delivery
        and not shop.delivery_available
    ):
        availability = Availability.DELIVERY_UNAVAILABLE

    goods_cost = unit_price * qty
    delivery_fee = shop.delivery_fee(distance_km) if include_delivery else 0.0

    return ComparisonCell(
        variant_id=item.variant_id,
        shop_id=shop.id,
        unit_price_used=unit_price,
        goods_cost=goods_cost,
        total_cost=goods_cost + delivery_fee,
        delivery_fee_applied=delivery_fee,
        distance_km=distance_km,
        lead_time_days=listing.lead_time_days,
        promo_applied=promo_applied,
        availability=availability,
        tier=(
            Tier.NORMAL if availability == Availability.AVAILABLE else Tier.UNAVAILABLE
        ),
    )
