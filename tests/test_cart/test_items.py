"""
Tests for line items, row identity and amount formatting.
"""

import hashlib
from decimal import Decimal

import pytest

from shopcart.services.cart.exceptions import InvalidItemError
from shopcart.services.cart.items import (
    LineItem,
    canonicalize_options,
    derive_row_id,
    format_amount,
    normalize_price,
    normalize_quantity,
)


# ============================================================================
# Unit Tests - Row Identity
# ============================================================================


class TestRowIdentity:
    """Test content-derived row IDs."""

    def test_canonicalize_sorts_by_key(self):
        options = {"size": "L", "color": "red", "a": 1}

        assert canonicalize_options(options) == [("a", 1), ("color", "red"), ("size", "L")]

    def test_canonicalize_leaves_input_order(self):
        options = {"size": "L", "color": "red"}

        canonicalize_options(options)

        assert list(options) == ["size", "color"]

    def test_row_id_is_md5_of_product_and_compact_options(self):
        expected = hashlib.md5(b'p1[["color","red"],["size","L"]]').hexdigest()

        assert derive_row_id("p1", {"size": "L", "color": "red"}) == expected

    def test_row_id_without_options(self):
        expected = hashlib.md5(b"p1[]").hexdigest()

        assert derive_row_id("p1", {}) == expected

    def test_row_id_independent_of_option_order(self):
        first = derive_row_id("p1", {"size": "L", "color": "red"})
        second = derive_row_id("p1", {"color": "red", "size": "L"})

        assert first == second
        assert len(first) == 32

    def test_row_id_differs_by_options(self):
        assert derive_row_id("p1", {"color": "red"}) != derive_row_id(
            "p1", {"color": "blue"}
        )

    def test_row_id_differs_by_product(self):
        assert derive_row_id("p1", {}) != derive_row_id("p2", {})

    def test_integer_product_id_matches_string(self):
        assert derive_row_id(7, {"size": "M"}) == derive_row_id("7", {"size": "M"})


# ============================================================================
# Unit Tests - Normalization
# ============================================================================


class TestNormalization:
    """Test price and quantity normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("10.50", Decimal("10.50")),
            (" 3 ", Decimal("3")),
            (4, Decimal("4")),
            (0.1, Decimal("0.1")),
            (Decimal("9.99"), Decimal("9.99")),
        ],
    )
    def test_normalize_price(self, value, expected):
        assert normalize_price(value) == expected

    @pytest.mark.parametrize("value", ["abc", None, True, "NaN", [1]])
    def test_normalize_price_rejects_non_numeric(self, value):
        with pytest.raises(InvalidItemError) as exc_info:
            normalize_price(value)

        assert exc_info.value.message == "Please supply a valid price."
        assert exc_info.value.code == "INVALID_ITEM"

    def test_normalize_quantity_keeps_whole_numbers_as_int(self):
        assert normalize_quantity(2.0) == 2
        assert isinstance(normalize_quantity(Decimal("3.0000")), int)

    def test_normalize_quantity_keeps_fractions(self):
        assert normalize_quantity("1.5") == Decimal("1.5")

    def test_normalize_quantity_rejects_bool(self):
        with pytest.raises(InvalidItemError):
            normalize_quantity(True)


# ============================================================================
# Unit Tests - Formatting
# ============================================================================


class TestFormatAmount:
    """Test number_format style formatting."""

    @pytest.mark.parametrize(
        "value,decimals,point,sep,expected",
        [
            (Decimal("1234.5"), 2, ".", ",", "1,234.50"),
            (Decimal("1234567.891"), 2, ",", ".", "1.234.567,89"),
            (Decimal("2.005"), 2, ".", ",", "2.01"),
            (Decimal("0.5"), 0, ".", ",", "1"),
            (Decimal("1000"), 3, ".", " ", "1 000.000"),
            (Decimal("1000"), 2, ".", "", "1000.00"),
            (Decimal("-0.001"), 2, ".", ",", "0.00"),
        ],
    )
    def test_format_amount(self, value, decimals, point, sep, expected):
        assert format_amount(value, decimals, point, sep) == expected

    def test_format_amount_defaults(self):
        assert format_amount(Decimal("220")) == "220.00"


# ============================================================================
# Unit Tests - Line Item
# ============================================================================


class TestLineItem:
    """Test line item construction and pricing."""

    def test_create_derives_row_id(self):
        item = LineItem.create("p1", "Shirt", "100", 2, {"color": "red"})

        assert item.row_id == derive_row_id("p1", {"color": "red"})
        assert item.unit_price == Decimal("100")
        assert item.quantity == 2

    def test_pricing_with_tax(self):
        item = LineItem.create("p1", "Shirt", 100, 2, tax_rate=10)

        assert item.unit_tax == Decimal("10")
        assert item.unit_price_with_tax == Decimal("110")
        assert item.line_subtotal == Decimal("200")
        assert item.line_tax == Decimal("20")
        assert item.line_total == Decimal("220")

    def test_discount_is_flat_per_line(self):
        item = LineItem.create("p1", "Shirt", 100, 4, {"discount": 5})

        assert item.discount == Decimal("5")

    def test_discount_defaults_to_zero(self):
        item = LineItem.create("p1", "Shirt", 100, 1)

        assert item.discount == Decimal("0")

    def test_setting_quantity_keeps_row_id(self):
        item = LineItem.create("p1", "Shirt", 100, 1)
        row_id = item.row_id

        item.quantity = "3"

        assert item.quantity == 3
        assert item.row_id == row_id

    def test_invalid_price_rejected(self):
        with pytest.raises(InvalidItemError):
            LineItem.create("p1", "Shirt", "free", 1)

    def test_dict_keeps_stored_row_id(self):
        item = LineItem.create("p1", "Shirt", "19.99", Decimal("1.5"), {"size": "M"})
        data = item.to_dict()
        data["row_id"] = "stored"

        restored = LineItem.from_dict(data)

        assert restored.row_id == "stored"
        assert restored.unit_price == Decimal("19.99")
        assert restored.quantity == Decimal("1.5")
        assert restored.options == {"size": "M"}

    def test_dict_values_are_json_primitives(self):
        data = LineItem.create("p1", "Shirt", "19.99", 2, tax_rate="7.5").to_dict()

        assert data["unit_price"] == "19.99"
        assert data["quantity"] == 2
        assert data["tax_rate"] == "7.5"

    def test_to_record_has_user_fields_only(self):
        record = LineItem.create("p1", "Shirt", 5, 1, tax_rate=10).to_record()

        assert set(record) == {"product_id", "name", "unit_price", "quantity", "options"}
