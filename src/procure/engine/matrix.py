"""Items x shops comparison matrix with stock status and price tiers."""

from __future__ import annotations

from datetime import datetime

from procure import logger
from procure.engine.config import EngineConfig
from procure.engine.cost import calculate_cost
from procure.engine.errors import InputInvalid
from procure.engine.geo import haversine_km
from procure.engine.models import (
    CatalogSnapshot,
    ComparisonCell,
    ComparisonMatrix,
    ComparisonRow,
    RequestedItem,
    Shop,
    Tier,
)


def shop_preference(shop: Shop | None, shop_id: str) -> tuple:
    """Tie-break key among equal prices: verified first, then rating, then id."""
    if shop is None:
        return (0, 0.0, shop_id)
    return (-int(shop.verified), -shop.rating, shop_id)


def validate_items(items: list[RequestedItem]) -> None:
    """Raise InputInvalid for requests the engine cannot price consistently."""
    seen: set[str] = set()
    for item in items:
        if item.variant_id in seen:
            raise InputInvalid(
                f"Variant {item.variant_id} requested more than once; "
                "merge the line items before comparing."
            )
        seen.add(item.variant_id)
        if item.quantity <= 0:
            raise InputInvalid(
                f"Quantity for {item.variant_id} must be positive (got {item.quantity})"
            )
        if not 0 <= item.waste_factor_pct <= 100:
            raise InputInvalid(
                f"Waste factor for {item.variant_id} must be within 0–100 "
                f"(got {item.waste_factor_pct})"
            )


def _select_shops(snapshot: CatalogSnapshot, shop_ids: list[str] | None) -> list[Shop]:
    if not shop_ids:
        return sorted(snapshot.shops, key=lambda s: s.id)
    shops: list[Shop] = []
    for shop_id in dict.fromkeys(shop_ids):
        shop = snapshot.shop(shop_id)
        if shop is None:
            logger.warning(f"Pinned shop '{shop_id}' is not in the snapshot; ignoring")
            continue
        shops.append(shop)
    return sorted(shops, key=lambda s: s.id)


def _delivery_distance(snapshot: CatalogSnapshot, shop: Shop) -> float | None:
    if snapshot.origin is None or shop.coord is None:
        return None
    return haversine_km(snapshot.origin, shop.coord)


def assign_tiers(
    cells: list[ComparisonCell],
    shops: dict[str, Shop],
    elevated_ratio: float,
) -> tuple[list[ComparisonCell], float | None]:
    """Assign display tiers to one item's cells and order them for display.

    Returns ``(ordered_cells, best_price)``.  Exactly one available cell is
    ``best``; other cells tied at the best price are ``normal``.
    """
    available = [c for c in cells if c.is_available]
    unavailable = [c for c in cells if not c.is_available]

    def _key(cell: ComparisonCell) -> tuple:
        return (cell.total_cost, *shop_preference(shops.get(cell.shop_id), cell.shop_id))

    available.sort(key=_key)
    unavailable.sort(key=lambda c: c.shop_id)

    if not available:
        tiered = [c.model_copy(update={"tier": Tier.UNAVAILABLE}) for c in unavailable]
        return tiered, None

    best_price = available[0].total_cost
    ordered: list[ComparisonCell] = []
    for idx, cell in enumerate(available):
        if idx == 0:
            tier = Tier.BEST
        elif cell.total_cost > best_price * elevated_ratio:
            tier = Tier.ELEVATED
        else:
            tier = Tier.NORMAL
        ordered.append(cell.model_copy(update={"tier": tier}))
    ordered.extend(c.model_copy(update={"tier": Tier.UNAVAILABLE}) for c in unavailable)
    return ordered, best_price


def build_matrix(
    snapshot: CatalogSnapshot,
    items: list[RequestedItem],
    *,
    now: datetime,
    include_delivery: bool = False,
    require_delivery: bool = False,
    shop_ids: list[str] | None = None,
    config: EngineConfig | None = None,
) -> ComparisonMatrix:
    """Price every requested item at every (or every pinned) shop.

    Args:
        snapshot: Catalog data fetched by the caller.
        items: Requested line items; variant ids must be unique.
        now: Moment used to decide whether promotions are active.
        include_delivery: Add each shop's delivery fee to the cell totals.
        require_delivery: Treat shops without delivery as unavailable.
        shop_ids: Restrict the comparison to these (pinned) shops.
        config: Engine tunables (defaults when omitted).

    Raises:
        InputInvalid: On duplicate or out-of-range request items.
    """
    config = config or EngineConfig()
    validate_items(items)

    shops = _select_shops(snapshot, shop_ids)
    shops_by_id = {s.id: s for s in shops}
    distances = {s.id: _delivery_distance(snapshot, s) for s in shops}

    rows: list[ComparisonRow] = []
    for item in items:
        cells = [
            calculate_cost(
                item,
                snapshot.listing(shop.id, item.variant_id),
                shop,
                now=now,
                distance_km=distances[shop.id],
                include_delivery=include_delivery,
                require_delivery=require_delivery,
            )
            for shop in shops
        ]
        ordered, best_price = assign_tiers(cells, shops_by_id, config.elevated_ratio)
        rows.append(ComparisonRow(item=item, cells=ordered, best_price=best_price))

    logger.debug(
        f"Built comparison matrix: {len(items)} item(s) x {len(shops)} shop(s), "
        f"{sum(1 for r in rows if r.best_price is None)} item(s) unavailable"
    )
    return ComparisonMatrix(
        items=list(items),
        shop_ids=[s.id for s in shops],
        rows=rows,
        include_delivery=include_delivery,
    )
