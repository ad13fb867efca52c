import pytest
from protean.exceptions import ValidationError
from storefront.exceptions import InvalidStateTransition, NotFound
from storefront.payments.ledger import captured_total, transactions
from storefront.payments.recording import record_payment_transaction, update_payment_transaction


@pytest.fixture
def order(place_order, make_variant):
    return place_order([(make_variant(price=2000), 2)])


class TestRecordPaymentTransaction:
    def test_records_successful_capture(self, order):
        txn_id = record_payment_transaction(order.id, "capture", 4000, external_id="ch_123")

        txn = transactions().get_by_transaction_id(txn_id)
        assert txn_id.startswith("TXN-CAPT-")
        assert txn.status == "successful"
        assert txn.currency == "USD"
        assert txn.provider == "fake"
        assert txn.external_id == "ch_123"
        assert captured_total(order.id) == 4000

    def test_sequence_numbers_per_type(self, order):
        first = record_payment_transaction(order.id, "refund", 100)
        second = record_payment_transaction(order.id, "refund", 100)

        assert first.endswith("-001")
        assert second.endswith("-002")

    def test_metadata_values_are_strings(self, order):
        txn_id = record_payment_transaction(order.id, "authorize", 4000, metadata={"attempt": 2, "source": "dashboard"})

        assert transactions().get_by_transaction_id(txn_id).metadata_dict == {"attempt": "2", "source": "dashboard"}

    def test_idempotency_key_returns_first_transaction(self, order):
        first = record_payment_transaction(order.id, "capture", 4000, idempotency_key="dash-1")
        second = record_payment_transaction(order.id, "capture", 4000, idempotency_key="dash-1")

        assert first == second
        assert captured_total(order.id) == 4000

    def test_unknown_order(self):
        with pytest.raises(NotFound):
            record_payment_transaction("missing-order", "capture", 100)

    def test_negative_amount_rejected(self, order):
        with pytest.raises(ValidationError):
            record_payment_transaction(order.id, "capture", -1)


class TestUpdatePaymentTransaction:
    def test_resolves_pending(self, order):
        txn_id = record_payment_transaction(order.id, "capture", 4000, status="pending")
        assert captured_total(order.id) == 0

        update_payment_transaction(txn_id, "successful", external_id="ch_999", metadata={"settled_by": "webhook"})

        txn = transactions().get_by_transaction_id(txn_id)
        assert txn.status == "successful"
        assert txn.external_id == "ch_999"
        assert txn.metadata_dict["settled_by"] == "webhook"
        assert captured_total(order.id) == 4000

    def test_settled_transaction_is_final(self, order):
        txn_id = record_payment_transaction(order.id, "capture", 4000)

        with pytest.raises(InvalidStateTransition):
            update_payment_transaction(txn_id, "failed")

    def test_cannot_resolve_to_pending(self, order):
        txn_id = record_payment_transaction(order.id, "capture", 4000, status="pending")

        with pytest.raises(InvalidStateTransition):
            update_payment_transaction(txn_id, "pending")

    def test_unknown_transaction(self):
        with pytest.raises(NotFound):
            update_payment_transaction("TXN-CAPT-2000-001", "successful")
