"""Unit tests for map clustering."""

import pytest

from procure.engine.clustering import bucket_key, cell_degrees, cluster_shops
from procure.engine.config import EngineConfig
from procure.engine.models import Bounds
from tests.procure_test.conftest import make_shop


@pytest.fixture
def shops():
    return [
        make_shop(id="b", lat=25.201, lng=55.301),
        make_shop(id="a", lat=25.205, lng=55.305),
        make_shop(id="c", lat=25.5, lng=55.9),
        make_shop(id="ghost", lat=None, lng=None),
    ]


class TestCellSize:
    def test_reference_zoom_uses_base(self):
        assert cell_degrees(13, EngineConfig()) == pytest.approx(0.01)

    def test_halves_per_zoom_level(self):
        config = EngineConfig()
        assert cell_degrees(12, config) == pytest.approx(0.02)
        assert cell_degrees(10, config) == pytest.approx(0.08)
        assert cell_degrees(14, config) == pytest.approx(0.005)

    def test_bucket_key_floors_negative_coordinates(self):
        assert bucket_key(-0.5, 0.5, 1.0) == (-1, 0)


class TestClusterShops:
    """Tests for cluster/marker output at different zoom levels."""

    def test_high_zoom_returns_markers(self, shops):
        layer = cluster_shops(shops, 15)
        assert not layer.clustered
        assert layer.clusters == []
        assert [m.shop_id for m in layer.markers] == ["a", "b", "c"]

    def test_threshold_zoom_is_unclustered(self, shops):
        assert not cluster_shops(shops, 13).clustered

    def test_low_zoom_groups_nearby_shops(self, shops):
        layer = cluster_shops(shops, 11)
        assert layer.clustered
        assert len(layer.clusters) == 1
        cluster = layer.clusters[0]
        assert cluster.count == 2
        assert cluster.shop_ids == ["a", "b"]
        assert cluster.lat == pytest.approx(25.203)
        assert cluster.lng == pytest.approx(55.303)
        assert [m.shop_id for m in layer.markers] == ["c"]

    def test_shops_without_location_skipped(self, shops):
        layer = cluster_shops(shops, 5)
        ids = [sid for c in layer.clusters for sid in c.shop_ids]
        ids += [m.shop_id for m in layer.markers]
        assert "ghost" not in ids
        assert sorted(ids) == ["a", "b", "c"]

    def test_bounds_filter(self, shops):
        bounds = Bounds(north=25.3, south=25.0, east=55.5, west=55.0)
        layer = cluster_shops(shops, 15, bounds=bounds)
        assert [m.shop_id for m in layer.markers] == ["a", "b"]

    def test_custom_threshold(self, shops):
        layer = cluster_shops(
            shops, 15, config=EngineConfig(cluster_zoom_threshold=16)
        )
        assert layer.clustered

    def test_counts_cover_every_located_shop(self, shops):
        for zoom in (3, 8, 11, 12, 14):
            layer = cluster_shops(shops, zoom)
            total = sum(c.count for c in layer.clusters) + len(layer.markers)
            assert total == 3

    def test_bounds_across_antimeridian(self):
        pacific = [
            make_shop(id="fiji", lat=-17.7, lng=178.0),
            make_shop(id="samoa", lat=-13.8, lng=-172.0),
            make_shop(id="perth", lat=-31.9, lng=115.9),
        ]
        bounds = Bounds(north=-10.0, south=-20.0, east=-170.0, west=170.0)
        layer = cluster_shops(pacific, 15, bounds=bounds)
        assert [m.shop_id for m in layer.markers] == ["fiji", "samoa"]
