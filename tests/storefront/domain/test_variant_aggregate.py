import pytest
from protean.exceptions import ValidationError
from storefront.catalogue.variant import ProductVariant
from storefront.exceptions import InsufficientStock


def _variant(**kwargs):
    defaults = dict(product_id="prod-1", sku="TSHIRT-M", price=2000, currency_code="usd", stock=10)
    defaults.update(kwargs)
    return ProductVariant.create(**defaults)


class TestVariantCreation:
    def test_currency_code_is_uppercased(self):
        assert _variant().currency_code == "USD"

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            _variant(stock=-1)


class TestVariantPricing:
    def test_native_currency_price(self):
        assert _variant().price_for("USD") == 2000

    def test_explicit_price_for_other_currency(self):
        variant = _variant()
        variant.set_price("eur", 2500)

        assert variant.price_for("EUR") == 2500
        assert len(variant.prices) == 1

    def test_setting_price_again_replaces_it(self):
        variant = _variant()
        variant.set_price("EUR", 2500)
        variant.set_price("EUR", 2600)

        assert variant.price_for("EUR") == 2600
        assert len(variant.prices) == 1

    def test_setting_native_price_updates_base_price(self):
        variant = _variant()
        variant.set_price("USD", 2100)

        assert variant.price == 2100
        assert len(variant.prices) == 0

    def test_missing_price_is_none(self):
        assert _variant().price_for("JPY") is None

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            _variant().set_price("EUR", -1)


class TestVariantStock:
    def test_adjust_stock_down_and_up(self):
        variant = _variant()
        assert variant.adjust_stock(-3) == 7
        assert variant.adjust_stock(3) == 10

    def test_adjust_below_zero_raises_and_leaves_stock(self):
        variant = _variant(stock=2)
        with pytest.raises(InsufficientStock) as exc:
            variant.adjust_stock(-3)

        assert variant.stock == 2
        assert exc.value.variant_id == str(variant.id)
        assert exc.value.reason == "insufficient stock for TSHIRT-M: 2 available, 3 requested"
