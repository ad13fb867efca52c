import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.catalogue.variant import ProductVariant
from storefront.checkout.checkout import Checkout, CheckoutStatus
from storefront.checkout.conversion import convert_to_order
from storefront.checkout.discount import apply_discount
from storefront.checkout.items import add_item
from storefront.checkout.lifecycle import (
    create_checkout,
    set_billing_address,
    set_customer_details,
    set_shipping_address,
)
from storefront.checkout.shipping import set_shipping_method
from storefront.discounts.discount import Discount
from storefront.exceptions import CheckoutNotActive
from storefront.order.order import Order, OrderStatus, PaymentStatus

ADDRESS = {"street": "1 Main St", "city": "Springfield", "postal_code": "12345", "country": "US"}


def _orders():
    return current_domain.repository_for(Order)._dao.query.all().items


@pytest.fixture
def ready_checkout(currencies, make_variant, shipping):
    """Build a checkout that passes every conversion check, minus the steps named in ``skip``."""

    def _build(skip=(), email="ada@example.com", full_name="Ada Lovelace"):
        variant = make_variant(price=2000, stock=10)
        checkout_id = create_checkout(session_id="sess-1")
        if "items" not in skip:
            add_item(checkout_id, quantity=2, variant_id=variant.id)
        if "shipping_address" not in skip:
            set_shipping_address(checkout_id, ADDRESS)
        if "billing_address" not in skip:
            set_billing_address(checkout_id, ADDRESS)
        if "customer" not in skip:
            set_customer_details(checkout_id, email=email, full_name=full_name)
        if "shipping_method" not in skip and "shipping_address" not in skip:
            set_shipping_method(checkout_id, "standard")
        return checkout_id

    return _build


class TestConversionValidation:
    def test_empty_checkout_is_rejected_before_any_order(self, ready_checkout):
        checkout_id = ready_checkout(skip=("items",))

        with pytest.raises(ValidationError) as exc:
            convert_to_order(checkout_id)

        assert exc.value.messages == {"items": ["checkout has no items"]}
        assert _orders() == []
        checkout = current_domain.repository_for(Checkout).get_by_id(checkout_id)
        assert checkout.status == CheckoutStatus.ACTIVE.value

    @pytest.mark.parametrize(
        "skip, field",
        [
            (("shipping_address",), "shipping_address"),
            (("billing_address",), "billing_address"),
            (("customer",), "customer_details"),
            (("shipping_method",), "shipping_method_id"),
        ],
    )
    def test_missing_details(self, ready_checkout, skip, field):
        checkout_id = ready_checkout(skip=skip)

        with pytest.raises(ValidationError) as exc:
            convert_to_order(checkout_id)

        assert field in exc.value.messages
        assert _orders() == []

    def test_checks_run_in_order(self, ready_checkout):
        checkout_id = ready_checkout(skip=("billing_address", "customer"))
        with pytest.raises(ValidationError) as exc:
            convert_to_order(checkout_id)
        assert "billing_address" in exc.value.messages

    def test_customer_name_required(self, ready_checkout):
        checkout_id = ready_checkout(full_name=None)
        with pytest.raises(ValidationError) as exc:
            convert_to_order(checkout_id)
        assert exc.value.messages == {"customer_details": ["customer full name is required"]}

    def test_address_needs_country(self, ready_checkout):
        checkout_id = ready_checkout()
        set_billing_address(checkout_id, {**ADDRESS, "country": None})
        with pytest.raises(ValidationError) as exc:
            convert_to_order(checkout_id)
        assert exc.value.messages == {"billing_address": ["billing address country is required"]}


class TestConversion:
    def test_places_order_snapshot(self, ready_checkout):
        checkout_id = ready_checkout()

        result = convert_to_order(checkout_id)

        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.checkout_id == checkout_id
        assert order.total_amount == 4000
        assert order.shipping_cost == 500
        assert order.final_amount == 4500 == result.final_amount
        assert order.shipping_address.street == "1 Main St"
        assert order.customer_email == "ada@example.com"
        assert order.is_guest is True
        assert order.items[0].quantity == 2
        assert result.order_number == order.order_number
        assert result.warnings == []

    def test_marks_checkout_completed(self, ready_checkout):
        checkout_id = ready_checkout()
        result = convert_to_order(checkout_id)

        checkout = current_domain.repository_for(Checkout).get_by_id(checkout_id)
        assert checkout.status == CheckoutStatus.COMPLETED.value
        assert str(checkout.converted_order_id) == result.order_id
        assert checkout.completed_at is not None

    def test_cannot_convert_twice(self, ready_checkout):
        checkout_id = ready_checkout()
        convert_to_order(checkout_id)

        with pytest.raises(CheckoutNotActive):
            convert_to_order(checkout_id)
        assert len(_orders()) == 1

    def test_does_not_touch_stock(self, ready_checkout):
        checkout_id = ready_checkout()
        convert_to_order(checkout_id)

        variant = current_domain.repository_for(ProductVariant).get_by_sku("TSHIRT-M")
        assert variant.stock == 10


class TestDiscountUsage:
    def test_usage_incremented_after_conversion(self, ready_checkout):
        discount = Discount.create(code="FIVE", value=500)
        current_domain.repository_for(Discount).add(discount)
        checkout_id = ready_checkout()
        apply_discount(checkout_id, "FIVE")

        result = convert_to_order(checkout_id)

        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.discount_code == "FIVE"
        assert order.discount_amount == 500
        assert order.final_amount == 4000
        assert current_domain.repository_for(Discount).get(discount.id).current_usage == 1

    def test_usage_failure_does_not_fail_conversion(self, ready_checkout, monkeypatch):
        discount = Discount.create(code="FIVE", value=500)
        current_domain.repository_for(Discount).add(discount)
        checkout_id = ready_checkout()
        apply_discount(checkout_id, "FIVE")

        def broken(self):
            raise RuntimeError("usage counter unavailable")

        monkeypatch.setattr(Discount, "increment_usage", broken)

        result = convert_to_order(checkout_id)

        assert current_domain.repository_for(Order).get(result.order_id).discount_code == "FIVE"
        assert result.warnings == ["discount_usage: usage counter unavailable"]
        assert current_domain.repository_for(Discount).get(discount.id).current_usage == 0
