import re

import pytest
from protean.exceptions import ValidationError
from storefront.exceptions import InvalidStateTransition
from storefront.order.events import OrderPlaced, OrderStatusChanged, PaymentStatusChanged
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.shared.address import Address, CustomerDetails

ADDRESS = Address(street="1 Main St", city="Springfield", postal_code="12345", country="US")


def _items():
    return [
        {"product_id": "prod-1", "variant_id": "var-1", "sku": "A", "quantity": 2, "price": 1500, "weight": 1.0},
        {"product_id": "prod-2", "variant_id": "var-2", "sku": "B", "quantity": 1, "price": 1000},
    ]


def _order(**kwargs):
    defaults = dict(
        items_data=_items(),
        currency="USD",
        shipping_cost=500,
        discount_amount=300,
        shipping_address=ADDRESS,
        billing_address=ADDRESS,
        customer_details=CustomerDetails(email="guest@example.com", full_name="Grace Hopper"),
    )
    defaults.update(kwargs)
    return Order.create(**defaults)


class TestOrderCreation:
    def test_amounts_are_derived_from_items(self):
        order = _order()

        assert order.total_amount == 4000
        assert order.final_amount == 4000 + 500 - 300
        assert order.total_weight == 2.0
        assert order.items[0].subtotal == 3000

    def test_starts_pending(self):
        order = _order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_order_number_format(self):
        order = _order()
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F-]{8}", order.order_number)
        assert order.order_number.endswith(str(order.id)[:8].upper())

    def test_guest_flag(self):
        assert _order().is_guest is True
        assert _order(user_id="user-1").is_guest is False

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError):
            _order(items_data=[])

    def test_raises_order_placed(self):
        order = _order()
        event = order._events[-1]

        assert isinstance(event, OrderPlaced)
        assert event.final_amount == 4200
        assert event.item_count == 3

    def test_customer_contact(self):
        order = _order()
        assert order.customer_email == "guest@example.com"
        assert order.customer_name == "Grace Hopper"

    def test_final_amount_must_match_components(self):
        with pytest.raises(ValidationError):
            Order(
                order_number="ORD-1",
                currency="USD",
                total_amount=1000,
                shipping_cost=100,
                discount_amount=0,
                final_amount=1000,
            )


class TestFulfilmentStatus:
    def test_happy_path(self):
        order = _order()
        for status in (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED):
            order.change_status(status)

        assert order.status == OrderStatus.COMPLETED.value
        assert order.completed_at is not None
        assert isinstance(order._events[-1], OrderStatusChanged)

    def test_cancel_sets_completed_at(self):
        order = _order()
        order.change_status(OrderStatus.CANCELLED)
        assert order.completed_at is not None

    def test_cannot_skip_payment(self):
        with pytest.raises(InvalidStateTransition) as exc:
            _order().change_status(OrderStatus.SHIPPED)
        assert exc.value.reason == "Cannot transition from pending to shipped"

    def test_terminal_states_are_final(self):
        order = _order()
        order.change_status(OrderStatus.FAILED)
        with pytest.raises(InvalidStateTransition):
            order.change_status(OrderStatus.PAID)


class TestPaymentFields:
    def test_record_payment_reference(self):
        order = _order()
        order.record_payment_reference("pay_123", provider="fake", payment_method="card")

        assert order.payment_id == "pay_123"
        assert order.payment_provider == "fake"
        assert order.payment_method == "card"

    def test_set_payment_status_raises_event(self):
        order = _order()
        order.set_payment_status(PaymentStatus.AUTHORIZED)

        event = order._events[-1]
        assert isinstance(event, PaymentStatusChanged)
        assert event.previous_payment_status == "pending"
        assert event.new_payment_status == "authorized"
