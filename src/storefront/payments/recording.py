"""Direct ledger writes — recording externally initiated attempts and resolving pending ones.

Used when the payment moved outside this service's own gateway calls, for
example a provider dashboard action or a webhook confirming an
authorization that was waiting on the customer.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order
from storefront.payments.ledger import next_transaction_id, transactions
from storefront.payments.transaction import PaymentTransaction, TransactionStatus, TransactionType
from storefront.utils.config import payment_provider


def _parse_metadata(raw) -> dict:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError({"metadata": [f"Metadata must be a JSON object: {exc.msg}"]}) from exc
    if not isinstance(data, dict):
        raise ValidationError({"metadata": ["Metadata must be a JSON object"]})
    return data


@storefront.command(part_of="PaymentTransaction")
class RecordPaymentTransaction:
    order_id = Identifier(required=True)
    transaction_type = String(required=True, choices=TransactionType)
    status = String(choices=TransactionStatus, default=TransactionStatus.SUCCESSFUL.value)
    amount = Integer(required=True, min_value=0)
    currency = String(max_length=3)
    external_id = String(max_length=255)
    idempotency_key = String(max_length=255)
    provider = String(max_length=50)
    raw_response = Text()
    metadata_json = Text()  # JSON object


@storefront.command(part_of="PaymentTransaction")
class UpdatePaymentTransaction:
    transaction_id = String(required=True, max_length=50)
    status = String(required=True, choices=TransactionStatus)
    external_id = String(max_length=255)
    metadata_json = Text()  # JSON object, merged into the existing metadata


@storefront.command_handler(part_of=PaymentTransaction)
class PaymentTransactionRecordingHandler:
    @handle(RecordPaymentTransaction)
    def record_payment_transaction(self, command):
        repo = transactions()
        existing = repo.get_by_idempotency_key(command.idempotency_key)
        if existing is not None:
            return existing.transaction_id

        order = current_domain.repository_for(Order).get_by_id(command.order_id)
        transaction_type = TransactionType(command.transaction_type)

        txn = PaymentTransaction.create(
            transaction_id=next_transaction_id(transaction_type),
            order_id=str(order.id),
            transaction_type=transaction_type,
            status=TransactionStatus(command.status or TransactionStatus.SUCCESSFUL.value),
            amount=command.amount,
            currency=command.currency or order.currency,
            provider=command.provider or order.payment_provider or payment_provider(),
            external_id=command.external_id,
            idempotency_key=command.idempotency_key,
            raw_response=command.raw_response,
            metadata=_parse_metadata(command.metadata_json),
        )
        repo.add(txn)
        return txn.transaction_id

    @handle(UpdatePaymentTransaction)
    def update_payment_transaction(self, command):
        repo = transactions()
        txn = repo.get_by_transaction_id(command.transaction_id)
        txn.resolve(
            TransactionStatus(command.status),
            external_id=command.external_id,
            metadata=_parse_metadata(command.metadata_json),
        )
        repo.add(txn)
        return txn.transaction_id


def record_payment_transaction(
    order_id, transaction_type, amount, status=TransactionStatus.SUCCESSFUL.value, **fields
) -> str:
    """Append a transaction for an order and return its transaction id.

    A repeated idempotency key returns the id of the transaction recorded first.
    """
    metadata = fields.pop("metadata", None)
    if metadata:
        fields["metadata_json"] = json.dumps(metadata)
    return current_domain.process(
        RecordPaymentTransaction(
            order_id=order_id,
            transaction_type=transaction_type,
            amount=amount,
            status=status,
            **fields,
        ),
        asynchronous=False,
    )


def update_payment_transaction(transaction_id, status, external_id=None, metadata=None) -> str:
    return current_domain.process(
        UpdatePaymentTransaction(
            transaction_id=transaction_id,
            status=status,
            external_id=external_id,
            metadata_json=json.dumps(metadata) if metadata else None,
        ),
        asynchronous=False,
    )
