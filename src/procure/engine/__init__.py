"""Procurement optimization engine: comparison, purchase plans, routes, clusters."""

from procure.engine.clustering import cluster_shops
from procure.engine.config import EngineConfig, load_engine_config
from procure.engine.cost import calculate_cost
from procure.engine.errors import InputInvalid
from procure.engine.geo import haversine_km
from procure.engine.matrix import build_matrix
from procure.engine.models import (
    Availability,
    BulkTier,
    CatalogSnapshot,
    ComparisonCell,
    ComparisonMatrix,
    MultiShopPlan,
    OptimizationResult,
    PromoWindow,
    RequestedItem,
    RoutePlan,
    Shop,
    ShopListing,
    SingleShopPlan,
    Tier,
)
from procure.engine.optimizer import optimize
from procure.engine.route import plan_route
from procure.engine.snapshot import SnapshotCache, load_request, load_snapshot
from procure.engine.workflow import plan_procurement

__all__ = [
    # Operations
    "build_matrix",
    "calculate_cost",
    "cluster_shops",
    "haversine_km",
    "optimize",
    "plan_procurement",
    "plan_route",
    # Config / loading
    "EngineConfig",
    "SnapshotCache",
    "load_engine_config",
    "load_request",
    "load_snapshot",
    # Errors
    "InputInvalid",
    # Models
    "Availability",
    "BulkTier",
    "CatalogSnapshot",
    "ComparisonCell",
    "ComparisonMatrix",
    "MultiShopPlan",
    "OptimizationResult",
    "PromoWindow",
    "RequestedItem",
    "RoutePlan",
    "Shop",
    "ShopListing",
    "SingleShopPlan",
    "Tier",
]
