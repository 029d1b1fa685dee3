"""CLI commands for inspecting the engine on snapshot/request JSON files."""

from datetime import datetime, timezone

import click

from procure import logger
from procure.engine.clustering import cluster_shops
from procure.engine.config import EngineConfig, load_engine_config
from procure.engine.errors import InputInvalid
from procure.engine.matrix import build_matrix
from procure.engine.models import Bounds, CatalogSnapshot, Coord
from procure.engine.optimizer import optimize
from procure.engine.route import plan_route
from procure.engine.snapshot import load_request, load_snapshot
from procure.engine.workflow import plan_procurement
from procure.ui.render import (
    map_layer_table,
    matrix_table,
    plan_table,
    render,
    route_table,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_shops(ctx, param, value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _parse_floats(value: str, count: int, what: str) -> list[float]:
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != count:
        raise click.BadParameter(
            f"expected {count} comma-separated numbers for {what}"
        )
    try:
        return [float(p) for p in parts]
    except ValueError:
        raise click.BadParameter(f"{what} must be numeric, got '{value}'")


def _parse_start(ctx, param, value: str | None) -> Coord | None:
    if value is None:
        return None
    lat, lng = _parse_floats(value, 2, "LAT,LNG")
    return (lat, lng)


def _parse_bounds(ctx, param, value: str | None) -> Bounds | None:
    if value is None:
        return None
    north, south, east, west = _parse_floats(value, 4, "N,S,E,W")
    return Bounds(north=north, south=south, east=east, west=west)


def _load_config() -> EngineConfig:
    try:
        return load_engine_config()
    except InputInvalid as e:
        raise click.ClickException(str(e))


def _load_snapshot(path: str, config: EngineConfig, now: datetime) -> CatalogSnapshot:
    try:
        snapshot = load_snapshot(path)
    except (InputInvalid, OSError) as e:
        logger.error(f"Snapshot load failed: {e}")
        raise click.ClickException(str(e))
    if snapshot.is_stale(now, config.snapshot_ttl_seconds):
        click.echo(
            f"⚠  Snapshot fetched at {snapshot.fetched_at.isoformat()} is stale; "
            "refetch prices before committing to a plan.",
            err=True,
        )
    return snapshot


def _load_items(path: str):
    try:
        return load_request(path)
    except (InputInvalid, OSError) as e:
        logger.error(f"Request load failed: {e}")
        raise click.ClickException(str(e))


def _now() -> datetime:
    return datetime.now(timezone.utc)


snapshot_argument = click.argument("snapshot_file", type=click.Path(exists=True))
request_argument = click.argument("request_file", type=click.Path(exists=True))
delivery_options = [
    click.option(
        "--include-delivery",
        is_flag=True,
        default=False,
        help="Add each shop's delivery fee to item costs.",
    ),
    click.option(
        "--require-delivery",
        is_flag=True,
        default=False,
        help="Treat shops that do not deliver as unavailable.",
    ),
    click.option(
        "--shops",
        callback=_parse_shops,
        default=None,
        help="Comma-separated shop ids to compare (pinned shops only).",
    ),
    click.option(
        "--currency", default="AED", show_default=True, help="Currency for display."
    ),
]


def with_delivery_options(func):
    for option in reversed(delivery_options):
        func = option(func)
    return func


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


@click.command()
@snapshot_argument
@request_argument
@with_delivery_options
def compare(
    snapshot_file: str,
    request_file: str,
    include_delivery: bool,
    require_delivery: bool,
    shops: list[str],
    currency: str,
) -> None:
    """Show the items x shops price comparison.

    SNAPSHOT_FILE is a catalog snapshot JSON; REQUEST_FILE holds
    {"items": [...]} with variant_id, quantity, unit and waste_factor_pct.
    """
    config = _load_config()
    now = _now()
    snapshot = _load_snapshot(snapshot_file, config, now)
    items = _load_items(request_file)

    try:
        matrix = build_matrix(
            snapshot,
            items,
            now=now,
            include_delivery=include_delivery,
            require_delivery=require_delivery,
            shop_ids=shops or None,
            config=config,
        )
    except InputInvalid as e:
        raise click.ClickException(str(e))

    render(matrix_table(matrix, currency))
    unavailable = [r.item.label for r in matrix.rows if r.best_price is None]
    if unavailable:
        click.echo(f"⚠  Not available at any shop: {', '.join(unavailable)}")


# ---------------------------------------------------------------------------
# optimize
# ---------------------------------------------------------------------------


@click.command("optimize")
@snapshot_argument
@request_argument
@with_delivery_options
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(),
    default=None,
    help="Write the full procurement report as JSON.",
)
def optimize_command(
    snapshot_file: str,
    request_file: str,
    include_delivery: bool,
    require_delivery: bool,
    shops: list[str],
    currency: str,
    output_file: str | None,
) -> None:
    """Recommend a single-shop or multi-shop purchase plan."""
    config = _load_config()
    now = _now()
    snapshot = _load_snapshot(snapshot_file, config, now)
    items = _load_items(request_file)

    try:
        report = plan_procurement(
            snapshot,
            items,
            now=now,
            include_delivery=include_delivery,
            require_delivery=require_delivery,
            shop_ids=shops or None,
            config=config,
        )
    except InputInvalid as e:
        raise click.ClickException(str(e))

    render(plan_table(report.optimization, currency))
    missing = report.optimization.missing_item_ids
    if missing:
        click.echo(
            f"⚠  {len(missing)} item(s) cannot be bought from any shop: "
            f"{', '.join(missing)}"
        )

    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(report.model_dump_json(indent=2))
        logger.info(f"Report saved to {output_file}")
        click.echo(f"\nReport saved to: {output_file}")


# ---------------------------------------------------------------------------
# route
# ---------------------------------------------------------------------------


@click.command()
@snapshot_argument
@request_argument
@click.option(
    "--start",
    callback=_parse_start,
    required=True,
    help="Start location as LAT,LNG.",
)
@click.option(
    "--no-return",
    is_flag=True,
    default=False,
    help="End the trip at the last shop instead of returning to the start.",
)
@click.option(
    "--shops",
    callback=_parse_shops,
    default=None,
    help="Shop ids to visit. Defaults to the shops of the multi-shop plan.",
)
@click.option("--currency", default="AED", show_default=True)
def route(
    snapshot_file: str,
    request_file: str,
    start: Coord,
    no_return: bool,
    shops: list[str],
    currency: str,
) -> None:
    """Plan the visiting order, travel time and cash for a shopping trip."""
    config = _load_config()
    now = _now()
    snapshot = _load_snapshot(snapshot_file, config, now)
    items = _load_items(request_file)

    try:
        matrix = build_matrix(snapshot, items, now=now, config=config)
        result = optimize(matrix, snapshot)
        shop_ids = shops or [e.shop_id for e in result.multi_shop.entries]
        if not shop_ids:
            click.echo("No shop can supply the requested items; nothing to visit.")
            return
        trip = plan_route(
            shop_ids,
            snapshot.shops,
            start,
            return_to_start=not no_return,
            assignment=result.multi_shop,
            config=config,
        )
    except InputInvalid as e:
        raise click.ClickException(str(e))

    render(route_table(trip, currency))
    if trip.unresolved_stops:
        click.echo(
            f"⚠  Left out (no location on file): {', '.join(trip.unresolved_stops)}"
        )
    if not trip.is_exact:
        click.echo("Note: visiting order is a heuristic and may not be the shortest.")


# ---------------------------------------------------------------------------
# clusters
# ---------------------------------------------------------------------------


@click.command()
@snapshot_argument
@click.option("--zoom", type=float, required=True, help="Map zoom level.")
@click.option(
    "--bounds",
    callback=_parse_bounds,
    default=None,
    help="Viewport as N,S,E,W degrees.",
)
def clusters(snapshot_file: str, zoom: float, bounds: Bounds | None) -> None:
    """Group the snapshot's shops into map clusters for a zoom level."""
    config = _load_config()
    snapshot = _load_snapshot(snapshot_file, config, _now())
    layer = cluster_shops(snapshot.shops, zoom, bounds=bounds, config=config)
    render(map_layer_table(layer))
