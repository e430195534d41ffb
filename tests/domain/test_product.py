"""Unit tests for the Product aggregate and its variants."""

from decimal import Decimal

import pytest

from shopcore.domain.exceptions import InsufficientStockError, ValidationError
from shopcore.domain.model.product import Measurements, Size
from tests.fakes import make_product, make_variant


class TestSize:

    def test_parse_is_case_insensitive(self):
        assert Size.parse(" xl ") == Size.XL

    def test_unknown_size_is_none(self):
        assert Size.parse("XXXXL") is None


class TestVariantStock:

    def test_available_is_quantity_minus_reserved(self):
        variant = make_variant(quantity=10, reserved=3)
        assert variant.available_quantity == 7
        assert variant.in_stock

    def test_fully_reserved_is_out_of_stock(self):
        variant = make_variant(quantity=3, reserved=3)
        assert variant.available_quantity == 0
        assert not variant.in_stock

    def test_missing_quantity_counts_as_zero(self):
        variant = make_variant(quantity=None)
        assert variant.available_quantity == 0
        assert not variant.in_stock


class TestEffectivePrice:

    def test_discount_used_when_below_price(self):
        assert make_variant(price="1000", discount_price="800").effective_price == Decimal("800")

    def test_zero_discount_ignored(self):
        assert make_variant(price="1000", discount_price="0").effective_price == Decimal("1000")

    def test_discount_not_below_price_ignored(self):
        assert make_variant(price="1000", discount_price="1200").effective_price == Decimal("1000")


class TestVariantProblems:

    def test_valid_variant_has_none(self):
        assert make_variant().problems() == []

    def test_reports_each_problem(self):
        variant = make_variant(size=None, color=" ", quantity=-1)
        variant.image_urls = []
        variant.price = None
        assert variant.problems() == [
            "no image",
            "no color",
            "no size",
            "invalid price",
            "invalid quantity",
        ]

    def test_product_problems(self):
        product = make_product()
        product.description = None
        product.slug = ""
        assert product.problems() == ["missing slug", "missing description"]


class TestReserve:

    def test_reserve_increments_reserved(self):
        variant = make_variant(quantity=10)
        variant.reserve(4)
        assert variant.reserved_quantity == 4
        assert variant.quantity == 10

    def test_reserve_more_than_available_rejected(self):
        variant = make_variant(quantity=5, reserved=3)
        with pytest.raises(InsufficientStockError, match="need 3, have 2 available"):
            variant.reserve(3, "Agbada")
        assert variant.reserved_quantity == 3

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            make_variant().reserve(0)


class TestRelease:

    def test_release_decrements_reserved(self):
        variant = make_variant(quantity=10, reserved=4)
        assert variant.release(3) == 3
        assert variant.reserved_quantity == 1

    def test_release_never_goes_negative(self):
        variant = make_variant(quantity=10, reserved=2)
        assert variant.release(5) == 2
        assert variant.reserved_quantity == 0


class TestDeduct:

    def test_deduct_consuming_reservation(self):
        variant = make_variant(quantity=10, reserved=4)
        variant.deduct(4, consume_reservation=True)
        assert variant.quantity == 6
        assert variant.reserved_quantity == 0
        assert variant.available_quantity == 6

    def test_deduct_without_reservation_keeps_other_holds(self):
        variant = make_variant(quantity=10, reserved=4)
        variant.deduct(3, consume_reservation=False)
        assert variant.quantity == 7
        assert variant.reserved_quantity == 4


class TestMeasurements:

    def test_create_requires_five(self):
        with pytest.raises(ValidationError, match="At least 5"):
            Measurements.create(neck=15, chest=40)

    def test_create_rejects_unknown_names(self):
        with pytest.raises(ValidationError, match="Unknown measurement"):
            Measurements.create(neck=15, chest=40, waist=32, ankle=9, laps=22, elbow=10)

    def test_create_rejects_non_positive(self):
        with pytest.raises(ValidationError, match="'waist' must be positive"):
            Measurements.create(neck=15, chest=40, waist=0, ankle=9, laps=22)

    def test_populated_lists_only_set_fields(self):
        m = Measurements.create(neck=15, chest=40, waist=32, ankle=9, laps=22.5)
        assert m.populated() == {
            "neck": 15.0,
            "chest": 40.0,
            "waist": 32.0,
            "laps": 22.5,
            "ankle": 9.0,
        }
