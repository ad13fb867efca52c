import pytest
from storefront.exceptions import InvalidStateTransition
from storefront.payments.transaction import (
    PaymentTransaction,
    TransactionStatus,
    TransactionType,
    format_transaction_id,
)


def _txn(transaction_type=TransactionType.CAPTURE, status=TransactionStatus.SUCCESSFUL, **kwargs):
    return PaymentTransaction.create(
        transaction_id=format_transaction_id(transaction_type, 1, year=2025),
        order_id="order-1",
        transaction_type=transaction_type,
        status=status,
        amount=kwargs.pop("amount", 4000),
        currency="USD",
        **kwargs,
    )


class TestTransactionIds:
    @pytest.mark.parametrize(
        "transaction_type, expected",
        [
            (TransactionType.AUTHORIZE, "TXN-AUTH-2025-007"),
            (TransactionType.CAPTURE, "TXN-CAPT-2025-007"),
            (TransactionType.CANCEL, "TXN-CANCEL-2025-007"),
            (TransactionType.REFUND, "TXN-REFUND-2025-007"),
        ],
    )
    def test_format(self, transaction_type, expected):
        assert format_transaction_id(transaction_type, 7, year=2025) == expected

    def test_sequence_grows_past_padding(self):
        assert format_transaction_id(TransactionType.CAPTURE, 1234, year=2025) == "TXN-CAPT-2025-1234"


class TestTransactionAmounts:
    def test_successful_capture_sets_captured_amount(self):
        txn = _txn()
        assert txn.captured_amount == 4000
        assert txn.refunded_amount == 0
        assert txn.is_successful is True

    def test_failed_capture_leaves_captured_amount_empty(self):
        assert _txn(status=TransactionStatus.FAILED).captured_amount == 0

    def test_refund_sets_refunded_amount(self):
        assert _txn(TransactionType.REFUND).refunded_amount == 4000


class TestTransactionMetadata:
    def test_values_are_stringified(self):
        txn = _txn(metadata={"full_capture": True, "remaining_amount": 0})
        assert txn.metadata_dict == {"full_capture": "True", "remaining_amount": "0"}

    def test_add_metadata(self):
        txn = _txn()
        txn.add_metadata("note", 5)
        assert txn.metadata_dict == {"note": "5"}

    def test_raw_response_dict_is_serialized(self):
        txn = _txn(raw_response={"id": "ch_1"})
        assert txn.raw_response == '{"id": "ch_1"}'


class TestTransactionResolution:
    def test_pending_resolves_once(self):
        txn = _txn(TransactionType.AUTHORIZE, TransactionStatus.PENDING)
        assert txn.authorized_amount == 0

        txn.resolve(TransactionStatus.SUCCESSFUL, external_id="pay_1", metadata={"via": "webhook"})

        assert txn.status == TransactionStatus.SUCCESSFUL.value
        assert txn.external_id == "pay_1"
        assert txn.authorized_amount == 4000
        assert txn.metadata_dict["via"] == "webhook"

        with pytest.raises(InvalidStateTransition):
            txn.resolve(TransactionStatus.FAILED)

    def test_cannot_resolve_to_pending(self):
        txn = _txn(TransactionType.AUTHORIZE, TransactionStatus.PENDING)
        with pytest.raises(InvalidStateTransition):
            txn.resolve(TransactionStatus.PENDING)
