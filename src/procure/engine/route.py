"""Visiting-order planning for a set of shops.

Up to ``exact_route_limit`` shops are ordered by exhaustive permutation
search, which is exactly optimal for the supplied distance function.  Larger
sets use nearest-neighbour construction improved by 2-opt reversals; that
path carries no optimality guarantee and is flagged with ``is_exact=False``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from itertools import permutations

from procure import logger
from procure.engine.config import EngineConfig
from procure.engine.errors import InputInvalid
from procure.engine.geo import haversine_km
from procure.engine.models import Coord, MultiShopPlan, RoutePlan, RouteStop, Shop

DistanceFn = Callable[[Coord, Coord], float]
DurationFn = Callable[[Coord, Coord], float]

_EPSILON = 1e-9


class _Legs:
    """Pairwise distances between the start (index 0) and each shop (1..n)."""

    def __init__(self, points: list[Coord], distance_fn: DistanceFn):
        self.dist = [
            [0.0 if i == j else distance_fn(a, b) for j, b in enumerate(points)]
            for i, a in enumerate(points)
        ]

    def length(self, order: list[int], return_to_start: bool) -> float:
        total = 0.0
        prev = 0
        for idx in order:
            total += self.dist[prev][idx]
            prev = idx
        if return_to_start and order:
            total += self.dist[prev][0]
        return total


def _exact_order(legs: _Legs, n: int, return_to_start: bool) -> list[int]:
    # Indices are assigned in shop-id order, so permutations() yields id
    # sequences lexicographically and the first minimum found wins ties.
    best_order: list[int] = []
    best_length = float("inf")
    for perm in permutations(range(1, n + 1)):
        length = legs.length(list(perm), return_to_start)
        if length < best_length - _EPSILON:
            best_length = length
            best_order = list(perm)
    return best_order


def _nearest_neighbour(legs: _Legs, n: int) -> list[int]:
    unvisited = list(range(1, n + 1))
    order: list[int] = []
    current = 0
    while unvisited:
        nxt = min(unvisited, key=lambda j: legs.dist[current][j])
        order.append(nxt)
        unvisited.remove(nxt)
        current = nxt
    return order


def _two_opt(
    legs: _Legs, order: list[int], return_to_start: bool, max_passes: int
) -> list[int]:
    best = list(order)
    best_length = legs.length(best, return_to_start)
    passes = 0
    improved = True
    while improved and passes < max_passes:
        improved = False
        passes += 1
        for i in range(len(best) - 1):
            for j in range(i + 1, len(best)):
                candidate = best[:i] + best[i : j + 1][::-1] + best[j + 1 :]
                length = legs.length(candidate, return_to_start)
                if length < best_length - _EPSILON:
                    best, best_length = candidate, length
                    improved = True
    logger.debug(f"2-opt finished after {passes} pass(es): {best_length:.3f} km")
    return best


def _resolve(
    shop_ids: list[str], shops: Iterable[Shop]
) -> tuple[list[Shop], list[str]]:
    if not shop_ids:
        raise InputInvalid("Route planning needs at least one shop")
    duplicates = sorted({s for s in shop_ids if shop_ids.count(s) > 1})
    if duplicates:
        raise InputInvalid(f"Shop(s) listed more than once: {', '.join(duplicates)}")

    by_id = {shop.id: shop for shop in shops}
    resolved: list[Shop] = []
    unresolved: list[str] = []
    for shop_id in shop_ids:
        shop = by_id.get(shop_id)
        if shop is None or shop.coord is None:
            unresolved.append(shop_id)
        else:
            resolved.append(shop)
    if unresolved:
        logger.warning(f"Excluding shops without a location: {', '.join(unresolved)}")
    return sorted(resolved, key=lambda s: s.id), unresolved


def plan_route(
    shop_ids: list[str],
    shops: Iterable[Shop],
    start: Coord,
    *,
    return_to_start: bool = True,
    assignment: MultiShopPlan | None = None,
    distance_fn: DistanceFn = haversine_km,
    duration_fn: DurationFn | None = None,
    config: EngineConfig | None = None,
) -> RoutePlan:
    """Order ``shop_ids`` into a visiting sequence from ``start``.

    Args:
        shop_ids: Shops to visit (order is irrelevant).
        shops: Shop records to resolve ids and coordinates against.
        start: Starting (lat, lng).
        return_to_start: Append a final leg back to ``start``.
        assignment: Multi-shop plan whose per-shop items and goods costs fill
            each stop's ``items_to_buy`` and ``cash_needed``.
        distance_fn: Kilometres between two points; great-circle by default,
            a road-network provider may be substituted.
        duration_fn: Minutes between two points; when omitted travel time is
            derived from ``config.speed_kmh``.
        config: Engine tunables (defaults when omitted).

    Raises:
        InputInvalid: If ``shop_ids`` is empty or contains duplicates, or
            ``start`` is not a valid coordinate.
    """
    config = config or EngineConfig()
    lat, lng = start
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise InputInvalid(f"Start location {start} is not a valid coordinate")

    resolved, unresolved = _resolve(shop_ids, shops)
    n = len(resolved)
    points: list[Coord] = [start] + [shop.coord for shop in resolved]
    legs = _Legs(points, distance_fn)

    is_exact = True
    if n < 2:
        order = list(range(1, n + 1))
    elif n <= config.exact_route_limit:
        order = _exact_order(legs, n, return_to_start)
        logger.debug(f"Exact route over {n} shops")
    else:
        is_exact = False
        order = _nearest_neighbour(legs, n)
        order = _two_opt(legs, order, return_to_start, config.two_opt_max_iterations)
        logger.debug(f"Heuristic route over {n} shops")

    def _minutes(a: int, b: int) -> float:
        if duration_fn is not None:
            return duration_fn(points[a], points[b])
        return legs.dist[a][b] / config.speed_kmh * 60

    stops: list[RouteStop] = []
    prev = 0
    for seq, idx in enumerate(order):
        shop = resolved[idx - 1]
        entry = assignment.entry(shop.id) if assignment else None
        stops.append(
            RouteStop(
                shop_id=shop.id,
                sequence_index=seq,
                items_to_buy=list(entry.item_ids) if entry else [],
                cash_needed=sum(c.cost for c in entry.item_costs) if entry else 0.0,
                distance_from_prev=legs.dist[prev][idx],
                travel_time_from_prev=_minutes(prev, idx),
                dwell_minutes=config.dwell_minutes,
            )
        )
        prev = idx

    if return_to_start and order:
        stops.append(
            RouteStop(
                shop_id=None,
                sequence_index=len(order),
                distance_from_prev=legs.dist[prev][0],
                travel_time_from_prev=_minutes(prev, 0),
                is_return=True,
            )
        )

    total_cash = sum(s.cash_needed for s in stops)
    return RoutePlan(
        stops=stops,
        total_distance_km=sum(s.distance_from_prev for s in stops),
        total_duration_minutes=sum(
            s.travel_time_from_prev + s.dwell_minutes for s in stops
        ),
        total_cash_needed=total_cash,
        cash_contingency=total_cash * config.cash_contingency_pct / 100,
        unresolved_stops=unresolved,
        is_exact=is_exact,
    )
