"""Shared factories for engine and CLI tests."""

from datetime import datetime, timezone

from procure.engine.models import (
    BulkTier,
    CatalogSnapshot,
    PromoWindow,
    RequestedItem,
    Shop,
    ShopListing,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Factories / Builders
# ---------------------------------------------------------------------------


def make_item(
    variant_id: str = "cement-50kg",
    quantity: float = 10,
    waste_factor_pct: float = 0,
    unit: str = "bag",
    **kwargs,
) -> RequestedItem:
    """Factory for RequestedItem with sensible defaults."""
    return RequestedItem(
        variant_id=variant_id,
        quantity=quantity,
        waste_factor_pct=waste_factor_pct,
        unit=unit,
        name=kwargs.get("name"),
    )


def make_listing(
    shop_id: str = "shop-a",
    variant_id: str = "cement-50kg",
    unit_price: float = 5.0,
    in_stock: bool = True,
    stock_quantity: float | None = None,
    bulk_tiers: list[tuple[float, float]] | None = None,
    **kwargs,
) -> ShopListing:
    """Factory for ShopListing; ``bulk_tiers`` is a list of (min_qty, price)."""
    promo_window = kwargs.get("promo_window")
    if isinstance(promo_window, tuple):
        promo_window = PromoWindow(start=promo_window[0], end=promo_window[1])
    return ShopListing(
        shop_id=shop_id,
        variant_id=variant_id,
        unit_price=unit_price,
        bulk_tiers=[BulkTier(min_qty=q, price=p) for q, p in bulk_tiers or []],
        promo_price=kwargs.get("promo_price"),
        promo_window=promo_window,
        in_stock=in_stock,
        stock_quantity=stock_quantity,
        min_order_qty=kwargs.get("min_order_qty", 0),
        max_order_qty=kwargs.get("max_order_qty"),
        lead_time_days=kwargs.get("lead_time_days", 0),
    )


def make_shop(
    id: str = "shop-a",
    lat: float | None = 25.2,
    lng: float | None = 55.3,
    verified: bool = False,
    rating: float = 4.0,
    **kwargs,
) -> Shop:
    """Factory for Shop with sensible defaults (no delivery)."""
    return Shop(
        id=id,
        name=kwargs.get("name", id),
        lat=lat,
        lng=lng,
        verified=verified,
        rating=rating,
        delivery_available=kwargs.get("delivery_available", False),
        delivery_fee_base=kwargs.get("delivery_fee_base"),
        delivery_fee_per_km=kwargs.get("delivery_fee_per_km"),
    )


def make_snapshot(
    shops: list[Shop] | None = None,
    listings: list[ShopListing] | None = None,
    fetched_at: datetime = NOW,
    origin: tuple[float, float] | None = None,
) -> CatalogSnapshot:
    """Factory for CatalogSnapshot with sensible defaults."""
    return CatalogSnapshot(
        shops=shops if shops is not None else [make_shop()],
        listings=listings if listings is not None else [make_listing()],
        fetched_at=fetched_at,
        origin=origin,
    )


def make_bulk_tier_scenario() -> tuple[CatalogSnapshot, list[RequestedItem]]:
    """1 item, qty 10 + 10% waste; shop A has a bulk tier, shop B is out of stock."""
    snapshot = make_snapshot(
        shops=[make_shop(id="A"), make_shop(id="B")],
        listings=[
            make_listing(shop_id="A", unit_price=5.0, bulk_tiers=[(10, 4.5)]),
            make_listing(shop_id="B", unit_price=6.0, in_stock=False),
        ],
    )
    return snapshot, [make_item(quantity=10, waste_factor_pct=10)]


def make_split_scenario() -> tuple[CatalogSnapshot, list[RequestedItem]]:
    """2 items; shop A only stocks item1 (10), shop B only stocks item2 (20)."""
    snapshot = make_snapshot(
        shops=[make_shop(id="A"), make_shop(id="B")],
        listings=[
            make_listing(shop_id="A", variant_id="item1", unit_price=10.0),
            make_listing(shop_id="B", variant_id="item2", unit_price=20.0),
        ],
    )
    items = [
        make_item(variant_id="item1", quantity=1),
        make_item(variant_id="item2", quantity=1),
    ]
    return snapshot, items
