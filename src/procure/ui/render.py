"""Rich tables for comparison matrices, purchase plans, routes and map layers."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from procure.engine.models import (
    Availability,
    ComparisonCell,
    ComparisonMatrix,
    MapLayer,
    OptimizationResult,
    RoutePlan,
    Tier,
)

TIER_STYLES: dict[Tier, str | None] = {
    Tier.BEST: "bold green",
    Tier.ELEVATED: "yellow",
    Tier.NORMAL: None,
    Tier.UNAVAILABLE: "dim",
}

_AVAILABILITY_LABELS: dict[Availability, str] = {
    Availability.INSUFFICIENT_STOCK: "low stock",
    Availability.OUT_OF_STOCK: "out of stock",
    Availability.NO_LISTING: "-",
    Availability.DELIVERY_UNAVAILABLE: "no delivery",
}


def fmt_money(amount: float | None, currency: str = "AED") -> str:
    if amount is None:
        return "-"
    return f"{currency} {amount:,.2f}"


def _cell_text(cell: ComparisonCell | None, currency: str) -> str:
    if cell is None:
        return "-"
    if cell.availability == Availability.NO_LISTING:
        return "-"
    text = fmt_money(cell.total_cost, currency)
    if cell.promo_applied:
        text += " (promo)"
    label = _AVAILABILITY_LABELS.get(cell.availability)
    if label:
        text += f" ({label})"
    return text


def matrix_table(matrix: ComparisonMatrix, currency: str = "AED") -> Table:
    """Items as rows, shops as columns; each cell styled by its tier."""
    table = Table(
        title=f"Price comparison: {len(matrix.items)} item(s), "
        f"{len(matrix.shop_ids)} shop(s)"
        + (" incl. delivery" if matrix.include_delivery else ""),
    )
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Qty", justify="right")
    for shop_id in matrix.shop_ids:
        table.add_column(shop_id, justify="right")

    for row in matrix.rows:
        values = [
            escape(row.item.label),
            f"{row.item.effective_quantity:g} {row.item.unit}",
        ]
        for shop_id in matrix.shop_ids:
            cell = matrix.cell(row.item.variant_id, shop_id)
            text = escape(_cell_text(cell, currency))
            style = TIER_STYLES[cell.tier] if cell else None
            values.append(f"[{style}]{text}[/]" if style else text)
        table.add_row(*values)
    return table


def plan_table(result: OptimizationResult, currency: str = "AED") -> Table:
    """Multi-shop assignment with the single-shop comparison as caption."""
    table = Table(title="Recommended purchase plan")
    table.add_column("Shop", style="yellow", no_wrap=True)
    table.add_column("Items")
    table.add_column("Delivery", justify="right")
    table.add_column("Subtotal", justify="right", style="green")

    for entry in result.multi_shop.entries:
        table.add_row(
            entry.shop_id,
            ", ".join(entry.item_ids),
            fmt_money(entry.delivery_fee, currency) if entry.delivery_fee else "-",
            fmt_money(entry.subtotal, currency),
        )
    table.add_row(
        "", "", "[bold]Total[/]", fmt_money(result.multi_shop.total_cost, currency)
    )

    single = result.cheapest_single_shop
    if single is None:
        table.caption = "No single shop stocks every item."
    else:
        table.caption = (
            f"Cheapest single shop: {single.shop_id} at "
            f"{fmt_money(single.total_cost, currency)}; "
            f"savings by splitting: {fmt_money(result.savings, currency)}"
        )
    return table


def route_table(route: RoutePlan, currency: str = "AED") -> Table:
    table = Table(
        title=f"Trip: {route.total_distance_km:.1f} km, "
        f"{route.total_duration_minutes:.0f} min"
        + ("" if route.is_exact else " (heuristic order)"),
    )
    table.add_column("#", justify="right")
    table.add_column("Stop", style="yellow", no_wrap=True)
    table.add_column("Distance", justify="right")
    table.add_column("Travel", justify="right")
    table.add_column("Buy")
    table.add_column("Cash", justify="right", style="green")

    for stop in route.stops:
        table.add_row(
            str(stop.sequence_index + 1),
            "Return to start" if stop.is_return else stop.shop_id,
            f"{stop.distance_from_prev:.1f} km",
            f"{stop.travel_time_from_prev:.0f} min",
            ", ".join(stop.items_to_buy) or "-",
            fmt_money(stop.cash_needed, currency) if stop.cash_needed else "-",
        )
    table.caption = (
        f"Cash needed {fmt_money(route.total_cash_needed, currency)} "
        f"+ contingency {fmt_money(route.cash_contingency, currency)}"
    )
    return table


def map_layer_table(layer: MapLayer) -> Table:
    table = Table(
        title=f"Map at zoom {layer.zoom:g} "
        + (
            f"(clustered, {layer.cell_degrees:.4f}° cells)"
            if layer.clustered
            else "(markers)"
        )
    )
    table.add_column("Kind")
    table.add_column("Lat", justify="right")
    table.add_column("Lng", justify="right")
    table.add_column("Shops")

    for cluster in layer.clusters:
        table.add_row(
            f"cluster ×{cluster.count}",
            f"{cluster.lat:.5f}",
            f"{cluster.lng:.5f}",
            ", ".join(cluster.shop_ids),
        )
    for marker in layer.markers:
        table.add_row("marker", f"{marker.lat:.5f}", f"{marker.lng:.5f}", marker.shop_id)
    return table


def render(table: Table) -> None:
    Console().print(table)


def to_string(table: Table, width: int = 120) -> str:
    """Return the rendered table as plain text (useful for testing)."""
    console = Console(width=width)
    with console.capture() as capture:
        console.print(table)
    return capture.get()
