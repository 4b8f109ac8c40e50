"""Unit tests for money and tax arithmetic"""

import pytest
from decimal import Decimal

from invoicehub.models.document import LineItem
from invoicehub.services.calculator import (
    apply_totals,
    area_quantity,
    build_line_item,
    compute_totals,
    line_total,
    reprice_line_item,
    round_money,
)


def _item(total: str, item_id: str = "i") -> LineItem:
    return LineItem(
        id=item_id,
        description="Line",
        quantity=Decimal("1"),
        unit_price=Decimal(total),
        total=Decimal(total),
    )


@pytest.mark.unit
class TestRounding:
    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_line_total_rounds_product(self):
        assert line_total(Decimal("0.333"), Decimal("10")) == Decimal("3.33")
        assert line_total("3", "19.99") == Decimal("59.97")

    def test_area_quantity_from_millimetres(self):
        assert area_quantity(1000, 500) == Decimal("0.5")
        assert area_quantity(Decimal("1234"), Decimal("567")) == Decimal("0.699678")

    @pytest.mark.parametrize("width,height", [(300, 200), (1234, 567), (Decimal("812.5"), 1200)])
    def test_area_quantity_ignores_orientation(self, width, height):
        assert area_quantity(width, height) == area_quantity(height, width)

    def test_swapped_cut_prices_the_same(self, sample_area_product):
        price = Decimal("45.99")
        portrait = build_line_item(sample_area_product, width_mm=300, height_mm=200, unit_price=price)
        landscape = build_line_item(sample_area_product, width_mm=200, height_mm=300, unit_price=price)

        assert portrait.quantity == landscape.quantity == Decimal("0.06")
        assert portrait.total == landscape.total == round_money(portrait.quantity * price)


@pytest.mark.unit
class TestComputeTotals:
    def test_single_line_at_23_percent(self):
        totals = compute_totals([_item("100.00")], Decimal("23"))

        assert totals.subtotal == Decimal("100.00")
        assert totals.tax_amount == Decimal("23.00")
        assert totals.total == Decimal("123.00")

    def test_tax_is_rounded_but_subtotal_is_exact_sum(self):
        totals = compute_totals([_item("10.01", "a"), _item("10.01", "b")], Decimal("13.5"))

        assert totals.subtotal == Decimal("20.02")
        # 20.02 * 13.5% = 2.7027
        assert totals.tax_amount == Decimal("2.70")
        assert totals.total == Decimal("22.72")

    def test_empty_document_is_zero(self):
        totals = compute_totals([], Decimal("23"))
        assert totals.total == Decimal("0.00")

    def test_negative_lines_pass_through(self):
        totals = compute_totals([_item("100.00", "a"), _item("-20.00", "b")], Decimal("0"))
        assert totals.subtotal == Decimal("80.00")
        assert totals.total == Decimal("80.00")


@pytest.mark.unit
class TestLineItems:
    def test_area_priced_line(self, sample_area_product):
        item = build_line_item(sample_area_product, width_mm=1000, height_mm=500, item_id="x")

        assert item.quantity == Decimal("0.5")
        assert item.total == Decimal("15.00")
        assert item.description == "4mm Silver Mirror (1000mm x 500mm)"
        assert item.unit == "sqm"
        assert item.product_id == "prod-2"

    def test_quantity_line_uses_catalog_price(self, sample_product):
        item = build_line_item(sample_product, quantity=3)

        assert item.quantity == Decimal("3")
        assert item.unit_price == Decimal("100.00")
        assert item.total == Decimal("300.00")
        assert item.description == "6mm Toughened Glass"

    def test_price_override_applies_to_line_only(self, sample_product):
        item = build_line_item(sample_product, quantity=2, unit_price="80")

        assert item.total == Decimal("160.00")
        assert sample_product.price == Decimal("100.00")

    def test_defaults_to_one_unit(self, sample_product):
        assert build_line_item(sample_product).quantity == Decimal("1")

    def test_reprice_rederives_total(self, sample_product):
        item = build_line_item(sample_product, quantity=1)
        edited = reprice_line_item(item, quantity=4, description="Custom cut")

        assert edited.total == Decimal("400.00")
        assert edited.description == "Custom cut"
        assert edited.id == item.id


@pytest.mark.unit
class TestApplyTotals:
    def test_balance_is_total_minus_paid(self, sample_document):
        doc = sample_document.model_copy(update={"amount_paid": Decimal("60.00")})
        result = apply_totals(doc)

        assert result.total == Decimal("123.00")
        assert result.balance_due == Decimal("63.00")

    def test_balance_never_negative(self, sample_document):
        doc = sample_document.model_copy(update={"amount_paid": Decimal("500.00")})
        assert apply_totals(doc).balance_due == Decimal("0.00")
