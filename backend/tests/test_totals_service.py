"""
Tests for cart pricing.

Tests: standard bulk tiers, pair/triple set prices, free-form lines,
legacy size labels, totals invariants, minor-unit conversion.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from models import CartItem
from services.totals_service import compute_totals, standard_subtotal, to_minor_units


def _cart(*items: dict) -> list[CartItem]:
    return [CartItem.model_validate(item) for item in items]


class TestStandardTiers:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "qty, expected",
        [(0, 0), (1, 220), (2, 400), (3, 550), (4, 730), (5, 910), (10, 1810)],
    )
    def test_step_prices(self, qty, expected):
        assert standard_subtotal(qty) == expected

    @pytest.mark.unit
    def test_quantities_across_lines_are_pooled(self):
        """Two lines of one canvas each get the two-canvas price, not 2 x 220."""
        totals = compute_totals(_cart(
            {"title": "Canvas A", "category": "standard", "quantity": 1},
            {"title": "Canvas B", "category": "standard", "quantity": 1},
        ))
        assert totals.standard_qty == 2
        assert totals.standard_subtotal == 400


class TestComputeTotals:

    @pytest.mark.unit
    def test_two_standard_canvases(self):
        totals = compute_totals(_cart({"title": "Canvas A", "category": "standard", "quantity": 2}))
        assert totals.standard_qty == 2
        assert totals.standard_subtotal == 400
        assert totals.subtotal == 400
        assert totals.shipping == 0
        assert totals.total == 400

    @pytest.mark.unit
    def test_pair_and_triple_sets(self):
        totals = compute_totals(_cart(
            {"title": "Pair", "category": "pair", "quantity": 2},
            {"title": "Triple", "category": "triple", "quantity": 1},
        ))
        assert totals.pair_qty == 2
        assert totals.pair_subtotal == 780
        assert totals.triple_qty == 1
        assert totals.triple_subtotal == 550
        assert totals.total == 1330

    @pytest.mark.unit
    def test_other_lines_use_their_own_price(self):
        totals = compute_totals(_cart(
            {"title": "Print", "category": "other", "quantity": 3, "price": 45.5},
        ))
        assert totals.other_subtotal == 136.5
        assert totals.total == 136.5

    @pytest.mark.unit
    def test_missing_category_without_legacy_size_is_other(self):
        totals = compute_totals(_cart({"title": "Sticker", "quantity": 2, "price": 10}))
        assert totals.other_subtotal == 20
        assert totals.standard_qty == 0

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "size, field",
        [("80×25", "standard_qty"), ("50×40", "pair_qty"), ("80×60", "triple_qty")],
    )
    def test_legacy_size_label_sets_category(self, size, field):
        totals = compute_totals(_cart({"title": "Canvas", "size": size, "quantity": 1}))
        assert getattr(totals, field) == 1

    @pytest.mark.unit
    def test_non_numeric_price_counts_as_zero(self):
        totals = compute_totals(_cart({"title": "Gift", "category": "other", "quantity": 2, "price": "free"}))
        assert totals.other_subtotal == 0
        assert totals.total == 0

    @pytest.mark.unit
    def test_non_finite_price_counts_as_zero(self):
        totals = compute_totals(_cart(
            {"title": "Canvas", "category": "standard", "quantity": 1},
            {"title": "Extra", "category": "other", "quantity": 3, "price": "nan"},
            {"title": "Extra", "category": "other", "quantity": 1, "price": "inf"},
        ))
        assert totals.other_subtotal == 0
        assert totals.total == 220

    @pytest.mark.unit
    def test_standard_size_label_wins_over_category(self):
        totals = compute_totals(_cart({"title": "Canvas", "category": "pair", "size": "80×25", "quantity": 1}))
        assert totals.standard_qty == 1
        assert totals.pair_qty == 0
        assert totals.total == 220

    @pytest.mark.unit
    def test_category_price_is_ignored_for_canvases(self):
        totals = compute_totals(_cart({"title": "Canvas", "category": "pair", "quantity": 1, "price": 1}))
        assert totals.pair_subtotal == 390
        assert totals.other_subtotal == 0

    @pytest.mark.unit
    def test_empty_cart_is_all_zero(self):
        totals = compute_totals([])
        assert totals.model_dump() == {
            "standard_qty": 0, "pair_qty": 0, "triple_qty": 0,
            "standard_subtotal": 0, "pair_subtotal": 0, "triple_subtotal": 0,
            "other_subtotal": 0, "subtotal": 0, "shipping": 0, "total": 0,
        }

    @pytest.mark.unit
    def test_subtotal_is_sum_of_parts(self):
        totals = compute_totals(_cart(
            {"title": "A", "category": "standard", "quantity": 4},
            {"title": "B", "category": "pair", "quantity": 1},
            {"title": "C", "category": "triple", "quantity": 2},
            {"title": "D", "category": "other", "quantity": 3, "price": 0.1},
        ))
        parts = (
            totals.standard_subtotal + totals.pair_subtotal
            + totals.triple_subtotal + totals.other_subtotal
        )
        assert totals.subtotal == parts
        assert totals.total == totals.subtotal + totals.shipping

    @pytest.mark.unit
    def test_serializes_with_camel_case_keys(self):
        totals = compute_totals(_cart({"title": "A", "category": "standard", "quantity": 1}))
        dumped = totals.model_dump(by_alias=True)
        assert dumped["standardQty"] == 1
        assert dumped["standardSubtotal"] == 220


class TestMinorUnits:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "amount, expected",
        [(400, 40000), (220.0, 22000), (19.99, 1999), (0.1 + 0.2, 30), (136.5, 13650)],
    )
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(amount) == expected
