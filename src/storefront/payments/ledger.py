"""Payment transaction ledger helpers shared by the payment commands."""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from storefront.exceptions import GatewayError
from storefront.order.state_machine import TransitionResult, finish_transition
from storefront.payments.transaction import (
    PaymentTransaction,
    TransactionStatus,
    TransactionType,
    format_transaction_id,
)
from storefront.utils.config import payment_provider

logger = structlog.get_logger(__name__)


@dataclass
class PaymentOutcome:
    """What a payment command did, handed back to the caller after commit."""

    transaction_id: str
    order_id: str
    type: str
    status: str
    amount: int
    error: str | None = None
    replayed: bool = False
    action_url: str | None = None
    metadata: dict = field(default_factory=dict)
    transition: TransitionResult | None = None
    failure: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != TransactionStatus.FAILED.value

    @property
    def warnings(self) -> list[str]:
        return self.transition.warnings if self.transition else []

    @classmethod
    def from_transaction(cls, txn: PaymentTransaction, replayed=False, **kwargs) -> "PaymentOutcome":
        metadata = txn.metadata_dict
        return cls(
            transaction_id=txn.transaction_id,
            order_id=str(txn.order_id),
            type=txn.type,
            status=txn.status,
            amount=txn.amount,
            error=metadata.get("error"),
            replayed=replayed,
            action_url=metadata.get("action_url"),
            metadata=metadata,
            **kwargs,
        )


def transactions():
    return current_domain.repository_for(PaymentTransaction)


def captured_total(order_id) -> int:
    return transactions().sum_amount_by_order_and_type(order_id, TransactionType.CAPTURE)


def refunded_total(order_id) -> int:
    return transactions().sum_amount_by_order_and_type(order_id, TransactionType.REFUND)


def find_replay(idempotency_key) -> PaymentOutcome | None:
    """Outcome of an earlier attempt made with the same idempotency key."""
    existing = transactions().get_by_idempotency_key(idempotency_key)
    if existing is None:
        return None
    logger.info(
        "Replaying payment attempt",
        idempotency_key=idempotency_key,
        transaction_id=existing.transaction_id,
    )
    return PaymentOutcome.from_transaction(existing, replayed=True)


def next_transaction_id(transaction_type: TransactionType) -> str:
    return format_transaction_id(transaction_type, transactions().count_by_type(transaction_type) + 1)


def record(
    order,
    transaction_type: TransactionType,
    status: TransactionStatus,
    amount: int,
    result=None,
    idempotency_key=None,
    metadata=None,
    provider=None,
) -> PaymentTransaction:
    """Append a transaction for ``order``, taking ids and raw response from a gateway result."""
    txn = PaymentTransaction.create(
        transaction_id=next_transaction_id(transaction_type),
        order_id=str(order.id),
        transaction_type=transaction_type,
        status=status,
        amount=amount,
        currency=order.currency,
        provider=provider or order.payment_provider or payment_provider(),
        external_id=result.transaction_id if result else None,
        idempotency_key=idempotency_key,
        raw_response=result.raw_response if result else None,
        metadata=metadata,
    )
    transactions().add(txn)

    logger.info(
        "Payment transaction recorded",
        order_id=str(order.id),
        transaction_id=txn.transaction_id,
        type=transaction_type.value,
        status=status.value,
        amount=amount,
    )
    return txn


def record_gateway_failure(order, transaction_type, amount, result, idempotency_key=None) -> PaymentOutcome:
    reason = (result.message if result else None) or "payment gateway error"
    txn = record(
        order,
        transaction_type,
        TransactionStatus.FAILED,
        amount,
        result=result,
        idempotency_key=idempotency_key,
        metadata={"error": reason},
    )
    logger.warning(
        "Payment gateway rejected operation",
        order_id=str(order.id),
        type=transaction_type.value,
        error=reason,
    )
    return PaymentOutcome.from_transaction(txn)


def finish(outcome: PaymentOutcome) -> PaymentOutcome:
    """Complete a payment command after its unit of work committed.

    Runs the transition's post-commit effects, then surfaces a recorded
    gateway failure as ``GatewayError``.
    """
    if outcome.transition is not None:
        finish_transition(outcome.transition)
    if outcome.failure is not None:
        raise outcome.failure
    if outcome.status == TransactionStatus.FAILED.value:
        raise GatewayError(outcome.error or "payment gateway error", transaction_id=outcome.transaction_id)
    return outcome
