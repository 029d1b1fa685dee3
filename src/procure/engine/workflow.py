"""End-to-end recomputation: matrix, purchase plan and optional route."""

from __future__ import annotations

from datetime import datetime

from procure import logger
from procure.engine.config import EngineConfig
from procure.engine.geo import haversine_km
from procure.engine.matrix import build_matrix
from procure.engine.models import (
    CatalogSnapshot,
    Coord,
    ProcurementReport,
    RequestedItem,
)
from procure.engine.optimizer import optimize
from procure.engine.route import DistanceFn, plan_route


def plan_procurement(
    snapshot: CatalogSnapshot,
    items: list[RequestedItem],
    *,
    now: datetime,
    include_delivery: bool = False,
    require_delivery: bool = False,
    shop_ids: list[str] | None = None,
    route_start: Coord | None = None,
    return_to_start: bool = True,
    distance_fn: DistanceFn = haversine_km,
    config: EngineConfig | None = None,
) -> ProcurementReport:
    """Run the whole engine for one request set.

    The route (when ``route_start`` is given) visits the shops of the
    multi-shop plan, carrying each shop's assigned items and cash.

    Raises:
        InputInvalid: On invalid request items or route start.
    """
    config = config or EngineConfig()
    if snapshot.is_stale(now, config.snapshot_ttl_seconds):
        logger.warning(
            f"Catalog snapshot from {snapshot.fetched_at.isoformat()} is older than "
            f"{config.snapshot_ttl_seconds:.0f}s; results may be outdated"
        )

    matrix = build_matrix(
        snapshot,
        items,
        now=now,
        include_delivery=include_delivery,
        require_delivery=require_delivery,
        shop_ids=shop_ids,
        config=config,
    )
    optimization = optimize(matrix, snapshot)

    route = None
    route_shops = [e.shop_id for e in optimization.multi_shop.entries]
    if route_start is not None and route_shops:
        route = plan_route(
            route_shops,
            snapshot.shops,
            route_start,
            return_to_start=return_to_start,
            assignment=optimization.multi_shop,
            distance_fn=distance_fn,
            config=config,
        )

    logger.info(
        f"Procurement plan: {len(items)} item(s), "
        f"{optimization.multi_shop.shops_used} shop(s), "
        f"savings {optimization.savings:.2f}"
    )
    return ProcurementReport(
        generated_at=now,
        matrix=matrix,
        optimization=optimization,
        route=route,
    )
