import pytest
from protean import current_domain
from storefront.catalogue.variant import ProductVariant
from storefront.exceptions import AmountOutOfRange, GatewayError, InvalidStateTransition
from storefront.order.fulfillment import update_order_status
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.payments.capture import capture_payment
from storefront.payments.ledger import captured_total, refunded_total, transactions
from storefront.payments.refund import refund_payment


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


@pytest.fixture
def captured_order(authorized_order):
    order, variant = authorized_order
    update_order_status(order.id, "shipped")
    capture_payment(order.payment_id)
    return _order(order.id), variant


class TestRefundPayment:
    def test_full_refund_after_capture(self, captured_order, gateway):
        order, variant = captured_order

        outcome = refund_payment(order.payment_id, reason="damaged")

        assert outcome.amount == 10000
        assert outcome.metadata["full_refund"] == "true"
        assert outcome.metadata["previous_payment_status"] == "captured"
        assert outcome.metadata["reason"] == "damaged"
        assert gateway.calls_for("refund")[0]["reason"] == "damaged"

        persisted = _order(order.id)
        assert persisted.payment_status == PaymentStatus.REFUNDED.value
        assert persisted.status == OrderStatus.COMPLETED.value
        assert current_domain.repository_for(ProductVariant).get(variant.id).stock == 10

    def test_partial_refunds(self, captured_order):
        order, variant = captured_order

        first = refund_payment(order.payment_id, amount=3000)

        assert first.metadata["full_refund"] == "false"
        assert first.metadata["remaining_available"] == "7000"
        assert _order(order.id).payment_status == PaymentStatus.CAPTURED.value
        assert current_domain.repository_for(ProductVariant).get(variant.id).stock == 7

        refund_payment(order.payment_id, amount=7000)

        assert refunded_total(order.id) == 10000
        assert _order(order.id).payment_status == PaymentStatus.REFUNDED.value

    def test_refund_of_partial_capture_on_authorized_payment(self, authorized_order):
        order, variant = authorized_order
        update_order_status(order.id, "shipped")
        capture_payment(order.payment_id, amount=4000)

        outcome = refund_payment(order.payment_id)

        assert outcome.amount == 4000
        assert _order(order.id).payment_status == PaymentStatus.REFUNDED.value
        assert current_domain.repository_for(ProductVariant).get(variant.id).stock == 10


class TestRefundRules:
    def test_exceeding_balance_is_rejected(self, captured_order, gateway):
        order, _ = captured_order
        refund_payment(order.payment_id, amount=6000)

        with pytest.raises(AmountOutOfRange) as exc:
            refund_payment(order.payment_id, amount=5000)

        assert exc.value.reason == "refund amount exceeds the remaining refundable balance of 4000"
        assert len(gateway.calls_for("refund")) == 1
        assert refunded_total(order.id) == 6000
        assert captured_total(order.id) - refunded_total(order.id) >= 0

    def test_fully_refunded(self, captured_order):
        order, _ = captured_order
        refund_payment(order.payment_id)

        with pytest.raises(InvalidStateTransition):
            refund_payment(order.payment_id, amount=100)

    def test_nothing_captured(self, authorized_order, gateway):
        order, _ = authorized_order

        with pytest.raises(AmountOutOfRange) as exc:
            refund_payment(order.payment_id, amount=1000)

        assert exc.value.reason == "no captured amount available for refund"
        assert gateway.calls_for("refund") == []

    @pytest.mark.parametrize(
        "amount, reason",
        [
            (0, "refund amount must be greater than zero"),
            (10001, "refund amount cannot exceed the original payment amount"),
        ],
    )
    def test_amount_bounds(self, captured_order, amount, reason):
        order, _ = captured_order
        with pytest.raises(AmountOutOfRange) as exc:
            refund_payment(order.payment_id, amount=amount)
        assert exc.value.reason == reason

    def test_pending_payment(self, place_order, make_variant):
        order = place_order([(make_variant(), 1)])
        order.record_payment_reference("fake_pay_manual", provider="fake")
        current_domain.repository_for(Order).add(order)

        with pytest.raises(InvalidStateTransition):
            refund_payment("fake_pay_manual", amount=100)


class TestRefundGatewayFailure:
    def test_failed_refund_does_not_count(self, captured_order, gateway):
        order, _ = captured_order
        gateway.configure(should_succeed=False, failure_reason="Refund window closed")

        with pytest.raises(GatewayError):
            refund_payment(order.payment_id, amount=2000)

        assert refunded_total(order.id) == 0
        refunds = [txn for txn in transactions().list_by_order(order.id) if txn.type == "refund"]
        assert [txn.status for txn in refunds] == ["failed"]
        assert refunds[0].refunded_amount == 0
        assert _order(order.id).payment_status == PaymentStatus.CAPTURED.value


class TestRefundIdempotency:
    def test_same_key_refunds_once(self, captured_order, gateway):
        order, _ = captured_order

        refund_payment(order.payment_id, amount=2000, idempotency_key="ref-1")
        replay = refund_payment(order.payment_id, amount=2000, idempotency_key="ref-1")

        assert replay.replayed is True
        assert len(gateway.calls_for("refund")) == 1
        assert refunded_total(order.id) == 2000
