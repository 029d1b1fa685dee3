"""Zoom-dependent grid clustering of shops for the map view."""

from __future__ import annotations

import math
from collections.abc import Iterable

from procure import logger
from procure.engine.config import EngineConfig
from procure.engine.models import Bounds, Cluster, MapLayer, MapMarker, Shop


def cell_degrees(zoom: float, config: EngineConfig) -> float:
    """Grid cell size in degrees; halves with every zoom level."""
    return config.cluster_base_degrees * 2 ** (config.cluster_reference_zoom - zoom)


def bucket_key(lat: float, lng: float, cell: float) -> tuple[int, int]:
    return (math.floor(lat / cell), math.floor(lng / cell))


def cluster_shops(
    shops: Iterable[Shop],
    zoom: float,
    *,
    bounds: Bounds | None = None,
    config: EngineConfig | None = None,
) -> MapLayer:
    """Group shops into grid clusters (below the zoom threshold) or markers.

    Shops without coordinates, or outside ``bounds`` when given, are skipped.
    Buckets holding a single shop are always rendered as markers.
    """
    config = config or EngineConfig()
    cell = cell_degrees(zoom, config)

    located = [
        s
        for s in sorted(shops, key=lambda s: s.id)
        if s.coord is not None and (bounds is None or bounds.contains(s.lat, s.lng))
    ]

    if zoom >= config.cluster_zoom_threshold:
        return MapLayer(
            zoom=zoom,
            cell_degrees=cell,
            clustered=False,
            markers=[MapMarker(shop_id=s.id, lat=s.lat, lng=s.lng) for s in located],
        )

    buckets: dict[tuple[int, int], list[Shop]] = {}
    for shop in located:
        buckets.setdefault(bucket_key(shop.lat, shop.lng, cell), []).append(shop)

    clusters: list[Cluster] = []
    markers: list[MapMarker] = []
    for key in sorted(buckets):
        members = buckets[key]
        if len(members) == 1:
            shop = members[0]
            markers.append(MapMarker(shop_id=shop.id, lat=shop.lat, lng=shop.lng))
            continue
        clusters.append(
            Cluster(
                lat=sum(s.lat for s in members) / len(members),
                lng=sum(s.lng for s in members) / len(members),
                count=len(members),
                shop_ids=[s.id for s in members],
            )
        )

    logger.debug(
        f"Zoom {zoom}: {len(located)} shop(s) -> {len(clusters)} cluster(s), "
        f"{len(markers)} marker(s) (cell {cell:.5f}°)"
    )
    return MapLayer(
        zoom=zoom,
        cell_degrees=cell,
        clustered=True,
        clusters=clusters,
        markers=markers,
    )
