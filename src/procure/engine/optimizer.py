"""Single-shop and multi-shop purchase planning from a comparison matrix.

The multi-shop plan is a greedy approximation: every item goes to the shop
holding its ``best`` cell.  Without delivery fees that per-item minimum is
also the global optimum.  With delivery fees the true problem is a weighted
set cover (NP-hard), so the greedy assignment is followed by a consolidation
pass that folds a shop's items into other shops already on the plan when that
saves its delivery fee, and the plan never ends up costlier than the cheapest
single-shop option.
"""

from __future__ import annotations

from procure import logger
from procure.engine.matrix import shop_preference
from procure.engine.models import (
    CatalogSnapshot,
    ComparisonCell,
    ComparisonMatrix,
    ItemCost,
    MultiShopEntry,
    MultiShopPlan,
    OptimizationResult,
    Shop,
    SingleShopPlan,
)

_EPSILON = 1e-9


def _shop_fees(matrix: ComparisonMatrix) -> dict[str, float]:
    """Delivery fee per shop as applied in the matrix (0 without delivery)."""
    fees: dict[str, float] = {shop_id: 0.0 for shop_id in matrix.shop_ids}
    if not matrix.include_delivery:
        return fees
    for row in matrix.rows:
        for cell in row.cells:
            if cell.goods_cost is not None:
                fees[cell.shop_id] = cell.delivery_fee_applied
    return fees


def _shop(snapshot: CatalogSnapshot | None, shop_id: str) -> Shop | None:
    return snapshot.shop(shop_id) if snapshot is not None else None


def _single_rank(plan: SingleShopPlan, snapshot: CatalogSnapshot | None) -> tuple:
    shop = _shop(snapshot, plan.shop_id)
    rating = shop.rating if shop else 0.0
    verified = shop.verified if shop else False
    return (
        not plan.covers_all_items,
        len(plan.missing_item_ids),
        plan.total_cost,
        -rating,
        -int(verified),
        plan.shop_id,
    )


def single_shop_candidates(
    matrix: ComparisonMatrix,
    snapshot: CatalogSnapshot | None = None,
    fees: dict[str, float] | None = None,
) -> list[SingleShopPlan]:
    """Totals for buying everything each shop can supply, best option first."""
    fees = fees if fees is not None else _shop_fees(matrix)
    plans: list[SingleShopPlan] = []
    for shop_id in matrix.shop_ids:
        goods = 0.0
        missing: list[str] = []
        for row in matrix.rows:
            cell = matrix.cell(row.item.variant_id, shop_id)
            if cell is not None and cell.is_available:
                goods += cell.goods_cost
            else:
                missing.append(row.item.variant_id)
        if len(missing) == len(matrix.rows):
            continue
        fee = fees.get(shop_id, 0.0)
        plans.append(
            SingleShopPlan(
                shop_id=shop_id,
                total_cost=goods + fee,
                covers_all_items=not missing,
                missing_item_ids=missing,
                delivery_fee=fee,
            )
        )
    plans.sort(key=lambda p: _single_rank(p, snapshot))
    return plans


def _build_entries(
    assignment: dict[str, ComparisonCell],
    item_order: list[str],
    fees: dict[str, float],
) -> list[MultiShopEntry]:
    by_shop: dict[str, list[ComparisonCell]] = {}
    for variant_id in item_order:
        cell = assignment.get(variant_id)
        if cell is not None:
            by_shop.setdefault(cell.shop_id, []).append(cell)

    entries: list[MultiShopEntry] = []
    for shop_id in sorted(by_shop):
        cells = by_shop[shop_id]
        goods = sum(c.goods_cost for c in cells)
        fee = fees.get(shop_id, 0.0)
        entries.append(
            MultiShopEntry(
                shop_id=shop_id,
                item_ids=[c.variant_id for c in cells],
                item_costs=[
                    ItemCost(variant_id=c.variant_id, cost=c.goods_cost) for c in cells
                ],
                delivery_fee=fee,
                subtotal=goods + fee,
            )
        )
    return entries


def _total(entries: list[MultiShopEntry]) -> float:
    return sum(e.subtotal for e in entries)


def _consolidate(
    matrix: ComparisonMatrix,
    snapshot: CatalogSnapshot | None,
    assignment: dict[str, ComparisonCell],
    item_order: list[str],
    fees: dict[str, float],
) -> dict[str, ComparisonCell]:
    """Fold whole shops into other used shops while that lowers the total."""
    current = dict(assignment)
    improved = True
    while improved:
        improved = False
        entries = _build_entries(current, item_order, fees)
        if len(entries) < 2:
            break
        current_total = _total(entries)
        for entry in sorted(entries, key=lambda e: (e.subtotal, e.shop_id)):
            others = [e.shop_id for e in entries if e.shop_id != entry.shop_id]
            candidate = dict(current)
            for variant_id in entry.item_ids:
                options = [
                    c
                    for c in (matrix.cell(variant_id, s) for s in others)
                    if c is not None and c.is_available
                ]
                if not options:
                    break
                candidate[variant_id] = min(
                    options,
                    key=lambda c: (
                        c.goods_cost,
                        *shop_preference(_shop(snapshot, c.shop_id), c.shop_id),
                    ),
                )
            else:
                new_total = _total(_build_entries(candidate, item_order, fees))
                if new_total < current_total - _EPSILON:
                    logger.debug(
                        f"Consolidated shop {entry.shop_id} away: "
                        f"{current_total:.2f} -> {new_total:.2f}"
                    )
                    current = candidate
                    improved = True
                    break
    return current


def optimize(
    matrix: ComparisonMatrix, snapshot: CatalogSnapshot | None = None
) -> OptimizationResult:
    """Derive the cheapest single-shop plan, a multi-shop plan and the savings.

    Args:
        matrix: Output of :func:`procure.engine.matrix.build_matrix`.
        snapshot: The snapshot the matrix was built from (for shop ratings
            and verification used in tie-breaks; ties fall back to shop id
            when omitted).

    Returns:
        An :class:`OptimizationResult`.  ``cheapest_single_shop`` is ``None``
        when no shop supplies every item (or nothing was requested);
        ``missing_item_ids`` lists items no shop can supply.
    """
    if not matrix.rows:
        return OptimizationResult()

    fees = _shop_fees(matrix)
    item_order = [row.item.variant_id for row in matrix.rows]
    missing = [row.item.variant_id for row in matrix.rows if row.best is None]

    candidates = single_shop_candidates(matrix, snapshot, fees)
    feasible = [p for p in candidates if p.covers_all_items]
    cheapest = feasible[0] if feasible else None

    assignment = {row.item.variant_id: row.best for row in matrix.rows if row.best}
    if matrix.include_delivery:
        assignment = _consolidate(matrix, snapshot, assignment, item_order, fees)
    entries = _build_entries(assignment, item_order, fees)
    multi = MultiShopPlan(entries=entries, total_cost=_total(entries))

    if cheapest is not None and cheapest.total_cost < multi.total_cost - _EPSILON:
        logger.debug(
            f"Single shop {cheapest.shop_id} beats the split plan; collapsing to it"
        )
        single_assignment = {
            variant_id: matrix.cell(variant_id, cheapest.shop_id)
            for variant_id in item_order
        }
        entries = _build_entries(single_assignment, item_order, fees)
        multi = MultiShopPlan(entries=entries, total_cost=_total(entries))

    savings = 0.0
    if cheapest is not None and cheapest.total_cost > multi.total_cost:
        savings = cheapest.total_cost - multi.total_cost

    if cheapest is None:
        logger.debug(f"No single shop covers all items; missing everywhere: {missing}")
    else:
        logger.debug(
            f"Cheapest single shop {cheapest.shop_id} at {cheapest.total_cost:.2f}; "
            f"multi-shop {multi.total_cost:.2f} across {multi.shops_used} shop(s)"
        )

    return OptimizationResult(
        cheapest_single_shop=cheapest,
        multi_shop=multi,
        savings=savings,
        missing_item_ids=missing,
        single_shop_candidates=candidates,
    )
