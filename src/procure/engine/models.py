"""Data models for catalog snapshots, comparison matrices, plans and routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

# (lat, lng) in decimal degrees.
Coord = tuple[float, float]


def _as_aware(moment: datetime) -> datetime:
    """Treat a naive timestamp as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class RequestedItem(BaseModel):
    """One material line-item the buyer wants to procure."""

    model_config = ConfigDict(frozen=True)

    variant_id: str = Field(..., description="Catalog product-variant identifier.")
    quantity: float = Field(..., gt=0, description="Requested quantity in `unit`.")
    unit: str = Field("unit", description="Unit of measure (e.g. 'bag', 'm3').")
    waste_factor_pct: float = Field(
        0.0,
        ge=0,
        le=100,
        description="Extra material ordered to cover cutting/handling loss (%).",
    )
    name: str | None = Field(None, description="Display name of the material.")

    @property
    def effective_quantity(self) -> float:
        """Quantity inflated by the waste factor."""
        return self.quantity * (1 + self.waste_factor_pct / 100)

    @property
    def label(self) -> str:
        return self.name or self.variant_id


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class BulkTier(BaseModel):
    """A price breakpoint applying once the ordered quantity reaches `min_qty`."""

    model_config = ConfigDict(frozen=True)

    min_qty: float = Field(..., gt=0)
    price: float = Field(..., ge=0)


class PromoWindow(BaseModel):
    """Inclusive validity window of a promotional price."""

    model_config = ConfigDict(frozen=True)

    start: AwareDatetime
    end: AwareDatetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= _as_aware(moment) <= self.end


class ShopListing(BaseModel):
    """Price and inventory of one variant at one shop."""

    model_config = ConfigDict(frozen=True)

    shop_id: str
    variant_id: str
    unit_price: float = Field(..., ge=0, description="List price per unit.")
    bulk_tiers: list[BulkTier] = Field(
        default_factory=list,
        description="Quantity price breaks, normalised to ascending min_qty.",
    )
    promo_price: float | None = Field(None, ge=0)
    promo_window: PromoWindow | None = None
    in_stock: bool = True
    stock_quantity: float | None = Field(
        None, description="Units on hand; None means unlimited."
    )
    min_order_qty: float = Field(0.0, ge=0)
    max_order_qty: float | None = None
    lead_time_days: int = Field(0, ge=0)

    @field_validator("bulk_tiers")
    @classmethod
    def _sort_tiers(cls, tiers: list[BulkTier]) -> list[BulkTier]:
        return sorted(tiers, key=lambda t: t.min_qty)


class Shop(BaseModel):
    """A physical shop that may sell and deliver materials."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    verified: bool = False
    rating: float = Field(0.0, ge=0, le=5)
    delivery_available: bool = False
    delivery_fee_base: float | None = Field(None, ge=0)
    delivery_fee_per_km: float | None = Field(None, ge=0)

    @property
    def coord(self) -> Coord | None:
        if self.lat is None or self.lng is None:
            return None
        return (self.lat, self.lng)

    def delivery_fee(self, distance_km: float | None) -> float:
        """Fee for delivering to a point `distance_km` away (0 if no delivery)."""
        if not self.delivery_available:
            return 0.0
        base = self.delivery_fee_base or 0.0
        per_km = self.delivery_fee_per_km or 0.0
        return base + per_km * (distance_km or 0.0)


class CatalogSnapshot(BaseModel):
    """Immutable view of shops and listings fetched for one computation."""

    model_config = ConfigDict(frozen=True)

    shops: list[Shop] = Field(default_factory=list)
    listings: list[ShopListing] = Field(default_factory=list)
    fetched_at: AwareDatetime = Field(
        ..., description="When the snapshot was fetched (timezone-aware)."
    )
    origin: Coord | None = Field(
        None, description="Buyer location used for delivery distances."
    )

    _shops_by_id: dict[str, Shop] = PrivateAttr(default_factory=dict)
    _listings_by_key: dict[tuple[str, str], ShopListing] = PrivateAttr(
        default_factory=dict
    )

    @model_validator(mode="after")
    def _index(self) -> "CatalogSnapshot":
        for shop in self.shops:
            if shop.id in self._shops_by_id:
                raise ValueError(f"Duplicate shop id in snapshot: {shop.id}")
            self._shops_by_id[shop.id] = shop
        for listing in self.listings:
            key = (listing.shop_id, listing.variant_id)
            if key in self._listings_by_key:
                raise ValueError(
                    f"Duplicate listing for variant {listing.variant_id} "
                    f"at shop {listing.shop_id}"
                )
            self._listings_by_key[key] = listing
        return self

    def shop(self, shop_id: str) -> Shop | None:
        return self._shops_by_id.get(shop_id)

    def listing(self, shop_id: str, variant_id: str) -> ShopListing | None:
        return self._listings_by_key.get((shop_id, variant_id))

    def is_stale(self, now: datetime, ttl_seconds: float) -> bool:
        """True once the snapshot is older than `ttl_seconds`."""
        return _as_aware(now) - self.fetched_at > timedelta(seconds=ttl_seconds)


# ---------------------------------------------------------------------------
# Comparison matrix
# ---------------------------------------------------------------------------


class Availability(str, Enum):
    AVAILABLE = "available"
    INSUFFICIENT_STOCK = "insufficient_stock"
    OUT_OF_STOCK = "out_of_stock"
    NO_LISTING = "no_listing"
    DELIVERY_UNAVAILABLE = "delivery_unavailable"


class Tier(str, Enum):
    BEST = "best"
    ELEVATED = "elevated"
    NORMAL = "normal"
    UNAVAILABLE = "unavailable"


class ComparisonCell(BaseModel):
    """Cost of one requested item at one shop."""

    variant_id: str
    shop_id: str
    unit_price_used: float | None = Field(
        None, description="Promo, bulk-tier or list price applied (None = no listing)."
    )
    goods_cost: float | None = Field(
        None, description="unit_price_used * effective_quantity, without delivery."
    )
    total_cost: float | None = Field(
        None, description="goods_cost plus delivery fee when delivery is included."
    )
    delivery_fee_applied: float = 0.0
    distance_km: float | None = None
    lead_time_days: int | None = None
    promo_applied: bool = False
    availability: Availability
    tier: Tier = Tier.UNAVAILABLE

    @property
    def is_available(self) -> bool:
        return self.availability == Availability.AVAILABLE


class ComparisonRow(BaseModel):
    """All cells of one requested item, in display order."""

    item: RequestedItem
    cells: list[ComparisonCell] = Field(default_factory=list)
    best_price: float | None = Field(
        None, description="Cheapest available total cost (None if none available)."
    )

    @property
    def best(self) -> ComparisonCell | None:
        for cell in self.cells:
            if cell.tier == Tier.BEST:
                return cell
        return None

    @property
    def available_cells(self) -> list[ComparisonCell]:
        return [c for c in self.cells if c.is_available]


class ComparisonMatrix(BaseModel):
    """Items x shops grid of comparison cells."""

    items: list[RequestedItem]
    shop_ids: list[str]
    rows: list[ComparisonRow]
    include_delivery: bool = False

    def row(self, variant_id: str) -> ComparisonRow | None:
        for row in self.rows:
            if row.item.variant_id == variant_id:
                return row
        return None

    def cell(self, variant_id: str, shop_id: str) -> ComparisonCell | None:
        row = self.row(variant_id)
        if row is None:
            return None
        for cell in row.cells:
            if cell.shop_id == shop_id:
                return cell
        return None


# ---------------------------------------------------------------------------
# Purchase plans
# ---------------------------------------------------------------------------


class SingleShopPlan(BaseModel):
    """Every requested item bought from one shop."""

    shop_id: str
    total_cost: float
    covers_all_items: bool
    missing_item_ids: list[str] = Field(default_factory=list)
    delivery_fee: float = 0.0


class ItemCost(BaseModel):
    variant_id: str
    cost: float = Field(..., description="Goods cost of the item at this shop.")


class MultiShopEntry(BaseModel):
    """Items assigned to one shop in a multi-shop plan."""

    shop_id: str
    item_ids: list[str]
    item_costs: list[ItemCost] = Field(default_factory=list)
    delivery_fee: float = 0.0
    subtotal: float


class MultiShopPlan(BaseModel):
    entries: list[MultiShopEntry] = Field(default_factory=list)
    total_cost: float = 0.0

    @property
    def shops_used(self) -> int:
        return len(self.entries)

    def entry(self, shop_id: str) -> MultiShopEntry | None:
        for entry in self.entries:
            if entry.shop_id == shop_id:
                return entry
        return None


class OptimizationResult(BaseModel):
    cheapest_single_shop: SingleShopPlan | None = None
    multi_shop: MultiShopPlan = Field(default_factory=MultiShopPlan)
    savings: float = 0.0
    missing_item_ids: list[str] = Field(
        default_factory=list,
        description="Items with no available shop anywhere in the catalog.",
    )
    single_shop_candidates: list[SingleShopPlan] = Field(
        default_factory=list,
        description="Every shop's single-shop totals, feasible and cheapest first.",
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class RouteStop(BaseModel):
    """One visit in a route; the return-to-start leg has `shop_id=None`."""

    shop_id: str | None
    sequence_index: int
    items_to_buy: list[str] = Field(default_factory=list)
    cash_needed: float = 0.0
    distance_from_prev: float = Field(0.0, description="Kilometres.")
    travel_time_from_prev: float = Field(0.0, description="Minutes of travel.")
    dwell_minutes: float = 0.0
    is_return: bool = False


class RoutePlan(BaseModel):
    stops: list[RouteStop] = Field(default_factory=list)
    total_distance_km: float = 0.0
    total_duration_minutes: float = 0.0
    total_cash_needed: float = 0.0
    cash_contingency: float = 0.0
    unresolved_stops: list[str] = Field(
        default_factory=list,
        description="Requested shops left out (unknown id or no coordinates).",
    )
    is_exact: bool = Field(
        True, description="False when the nearest-neighbour/2-opt heuristic was used."
    )

    @property
    def shop_sequence(self) -> list[str]:
        return [s.shop_id for s in self.stops if s.shop_id is not None]


# ---------------------------------------------------------------------------
# Map
# ---------------------------------------------------------------------------


class Bounds(BaseModel):
    """Viewport bounding box in degrees."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        if not self.south <= lat <= self.north:
            return False
        if self.west <= self.east:
            return self.west <= lng <= self.east
        # Viewport spans the antimeridian.
        return lng >= self.west or lng <= self.east


class Cluster(BaseModel):
    lat: float = Field(..., description="Centroid latitude.")
    lng: float = Field(..., description="Centroid longitude.")
    count: int
    shop_ids: list[str]


class MapMarker(BaseModel):
    shop_id: str
    lat: float
    lng: float


class MapLayer(BaseModel):
    zoom: float
    cell_degrees: float
    clustered: bool
    clusters: list[Cluster] = Field(default_factory=list)
    markers: list[MapMarker] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class ProcurementReport(BaseModel):
    """Matrix, optimisation and optional route computed for one request set."""

    generated_at: datetime
    matrix: ComparisonMatrix
    optimization: OptimizationResult
    route: RoutePlan | None = None
