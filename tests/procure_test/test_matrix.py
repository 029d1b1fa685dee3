"""Unit tests for the comparison matrix builder."""

import pytest

from procure.engine.config import EngineConfig
from procure.engine.errors import InputInvalid
from procure.engine.geo import haversine_km
from procure.engine.matrix import build_matrix
from procure.engine.models import Availability, RequestedItem, Tier
from tests.procure_test.conftest import (
    NOW,
    make_bulk_tier_scenario,
    make_item,
    make_listing,
    make_shop,
    make_snapshot,
)


def _three_shop_snapshot(prices: dict[str, float], **shop_kwargs):
    shops = [make_shop(id=s, **shop_kwargs.get(s, {})) for s in prices]
    listings = [make_listing(shop_id=s, unit_price=p) for s, p in prices.items()]
    return make_snapshot(shops=shops, listings=listings)


class TestTiers:
    """Tests for best / elevated / normal / unavailable tiers."""

    def test_bulk_tier_scenario(self):
        """Shop A's bulk price wins; out-of-stock shop B is unavailable."""
        snapshot, items = make_bulk_tier_scenario()
        matrix = build_matrix(snapshot, items, now=NOW)

        a = matrix.cell("cement-50kg", "A")
        b = matrix.cell("cement-50kg", "B")
        assert a.tier == Tier.BEST
        assert a.total_cost == pytest.approx(49.5)
        assert b.tier == Tier.UNAVAILABLE
        assert b.availability == Availability.OUT_OF_STOCK
        assert matrix.rows[0].best_price == pytest.approx(49.5)

    def test_elevated_above_twenty_percent(self):
        snapshot = _three_shop_snapshot({"a": 10.0, "b": 12.0, "c": 12.5})
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        assert matrix.cell("cement-50kg", "a").tier == Tier.BEST
        assert matrix.cell("cement-50kg", "b").tier == Tier.NORMAL
        assert matrix.cell("cement-50kg", "c").tier == Tier.ELEVATED

    def test_custom_elevated_ratio(self):
        snapshot = _three_shop_snapshot({"a": 10.0, "b": 12.0})
        matrix = build_matrix(
            snapshot,
            [make_item(quantity=1)],
            now=NOW,
            config=EngineConfig(elevated_ratio=1.1),
        )
        assert matrix.cell("cement-50kg", "b").tier == Tier.ELEVATED

    def test_no_listing_cells(self):
        snapshot = make_snapshot(
            shops=[make_shop(id="a"), make_shop(id="b")],
            listings=[make_listing(shop_id="a")],
        )
        matrix = build_matrix(snapshot, [make_item()], now=NOW)
        cell = matrix.cell("cement-50kg", "b")
        assert cell.availability == Availability.NO_LISTING
        assert cell.tier == Tier.UNAVAILABLE

    def test_all_unavailable_has_no_best(self):
        snapshot = make_snapshot(
            shops=[make_shop(id="a"), make_shop(id="b")],
            listings=[
                make_listing(shop_id="a", in_stock=False),
                make_listing(shop_id="b", stock_quantity=1),
            ],
        )
        matrix = build_matrix(snapshot, [make_item(quantity=5)], now=NOW)
        row = matrix.rows[0]
        assert row.best is None
        assert row.best_price is None
        assert all(c.tier == Tier.UNAVAILABLE for c in row.cells)

    def test_unavailable_iff_not_available(self):
        snapshot = make_snapshot(
            shops=[make_shop(id=s) for s in "abcd"],
            listings=[
                make_listing(shop_id="a", unit_price=3),
                make_listing(shop_id="b", in_stock=False),
                make_listing(shop_id="c", stock_quantity=2),
            ],
        )
        matrix = build_matrix(snapshot, [make_item(quantity=5)], now=NOW)
        for cell in matrix.rows[0].cells:
            assert (cell.tier == Tier.UNAVAILABLE) == (not cell.is_available)


class TestTieBreak:
    """Exactly one best cell; ties go to verified, then rating, then id."""

    def test_verified_wins_tie(self):
        snapshot = _three_shop_snapshot(
            {"a": 10.0, "b": 10.0},
            b={"verified": True},
        )
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        assert matrix.rows[0].best.shop_id == "b"
        assert matrix.cell("cement-50kg", "a").tier == Tier.NORMAL

    def test_rating_wins_tie(self):
        snapshot = _three_shop_snapshot(
            {"a": 10.0, "b": 10.0},
            a={"rating": 3.0},
            b={"rating": 4.5},
        )
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        assert matrix.rows[0].best.shop_id == "b"

    def test_shop_id_wins_tie(self):
        snapshot = _three_shop_snapshot({"b": 10.0, "a": 10.0})
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        assert matrix.rows[0].best.shop_id == "a"

    def test_exactly_one_best_per_item(self):
        snapshot = _three_shop_snapshot({"a": 7.0, "b": 7.0, "c": 7.0})
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        tiers = [c.tier for c in matrix.rows[0].cells]
        assert tiers.count(Tier.BEST) == 1

    def test_best_equals_min_available_cost(self):
        snapshot = _three_shop_snapshot({"a": 9.0, "b": 7.5, "c": 8.0})
        matrix = build_matrix(snapshot, [make_item(quantity=2)], now=NOW)
        row = matrix.rows[0]
        assert row.best.total_cost == min(c.total_cost for c in row.available_cells)

    def test_display_order(self):
        snapshot = make_snapshot(
            shops=[make_shop(id=s) for s in "abc"],
            listings=[
                make_listing(shop_id="a", unit_price=9.0),
                make_listing(shop_id="b", in_stock=False, unit_price=1.0),
                make_listing(shop_id="c", unit_price=8.0),
            ],
        )
        matrix = build_matrix(snapshot, [make_item(quantity=1)], now=NOW)
        assert [c.shop_id for c in matrix.rows[0].cells] == ["c", "a", "b"]


class TestDeliveryAndPinning:
    """Tests for delivery distance and pinned shop filtering."""

    def test_delivery_distance_from_origin(self):
        shop = make_shop(
            id="a",
            lat=25.3,
            lng=55.4,
            delivery_available=True,
            delivery_fee_base=10,
            delivery_fee_per_km=1,
        )
        snapshot = make_snapshot(
            shops=[shop], listings=[make_listing(shop_id="a")], origin=(25.2, 55.3)
        )
        matrix = build_matrix(
            snapshot, [make_item(quantity=1)], now=NOW, include_delivery=True
        )
        cell = matrix.cell("cement-50kg", "a")
        expected_km = haversine_km((25.2, 55.3), (25.3, 55.4))
        assert cell.distance_km == pytest.approx(expected_km)
        assert cell.delivery_fee_applied == pytest.approx(10 + expected_km)

    def test_require_delivery_marks_non_delivering_shops(self):
        snapshot = make_snapshot(
            shops=[make_shop(id="a"), make_shop(id="b", delivery_available=True)],
            listings=[
                make_listing(shop_id="a", unit_price=1.0),
                make_listing(shop_id="b", unit_price=2.0),
            ],
        )
        matrix = build_matrix(
            snapshot, [make_item(quantity=1)], now=NOW, require_delivery=True
        )
        assert (
            matrix.cell("cement-50kg", "a").availability
            == Availability.DELIVERY_UNAVAILABLE
        )
        assert matrix.rows[0].best.shop_id == "b"

    def test_pinned_shops_only(self):
        snapshot = _three_shop_snapshot({"a": 1.0, "b": 2.0, "c": 3.0})
        matrix = build_matrix(
            snapshot, [make_item()], now=NOW, shop_ids=["c", "b", "missing"]
        )
        assert matrix.shop_ids == ["b", "c"]
        assert matrix.rows[0].best.shop_id == "b"


class TestValidation:
    def test_duplicate_variant_rejected(self):
        with pytest.raises(InputInvalid, match="more than once"):
            build_matrix(make_snapshot(), [make_item(), make_item()], now=NOW)

    def test_unvalidated_quantity_rejected(self):
        item = RequestedItem.model_construct(
            variant_id="v", quantity=0, unit="bag", waste_factor_pct=0, name=None
        )
        with pytest.raises(InputInvalid, match="must be positive"):
            build_matrix(make_snapshot(), [item], now=NOW)

    def test_empty_request(self):
        matrix = build_matrix(make_snapshot(), [], now=NOW)
        assert matrix.rows == []

    def test_idempotent(self):
        snapshot, items = make_bulk_tier_scenario()
        first = build_matrix(snapshot, items, now=NOW)
        second = build_matrix(snapshot, items, now=NOW)
        assert first.model_dump_json() == second.model_dump_json()
