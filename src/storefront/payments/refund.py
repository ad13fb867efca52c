"""Payment refunds — partial or full return of captured funds.

The refundable balance is always derived from the ledger: successful
captures minus successful refunds. Only a refund that brings the refunded
total up to the captured total marks the payment ``refunded``.
"""

import structlog
from protean import handle
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import AmountOutOfRange, InvalidStateTransition
from storefront.order.order import Order, PaymentStatus
from storefront.order.state_machine import apply_payment_transition
from storefront.payments.gateway import get_gateway
from storefront.payments.ledger import (
    PaymentOutcome,
    captured_total,
    find_replay,
    finish,
    record,
    record_gateway_failure,
    refunded_total,
)
from storefront.payments.transaction import PaymentTransaction, TransactionStatus, TransactionType

logger = structlog.get_logger(__name__)

_REFUNDABLE_STATUSES = {PaymentStatus.AUTHORIZED.value, PaymentStatus.CAPTURED.value}


def _validate_refund(order: Order, amount: int, captured: int, refunded: int) -> None:
    if order.payment_status not in _REFUNDABLE_STATUSES and captured - refunded <= 0:
        raise InvalidStateTransition(
            f"payment cannot be refunded while {order.payment_status}", field="payment_status"
        )
    if amount <= 0:
        raise AmountOutOfRange("refund amount must be greater than zero")
    if amount > order.final_amount:
        raise AmountOutOfRange("refund amount cannot exceed the original payment amount")
    if captured == 0:
        raise AmountOutOfRange("no captured amount available for refund")
    if refunded >= captured:
        raise AmountOutOfRange("payment has already been fully refunded")
    if amount > captured - refunded:
        raise AmountOutOfRange(
            f"refund amount exceeds the remaining refundable balance of {captured - refunded}"
        )


@storefront.command(part_of="PaymentTransaction")
class RefundPayment:
    payment_id = String(required=True, max_length=255)
    amount = Integer()  # Defaults to the whole refundable balance
    reason = String(max_length=500)
    idempotency_key = String(max_length=255)


@storefront.command_handler(part_of=PaymentTransaction)
class RefundPaymentHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        replay = find_replay(command.idempotency_key)
        if replay is not None:
            return replay

        repo = current_domain.repository_for(Order)
        order = repo.get_by_payment_id(command.payment_id)

        captured = captured_total(order.id)
        refunded = refunded_total(order.id)
        amount = command.amount if command.amount is not None else captured - refunded
        _validate_refund(order, amount, captured, refunded)

        result = get_gateway().refund(order.payment_id, amount, order.currency, command.reason or "")
        if not result.success:
            return record_gateway_failure(order, TransactionType.REFUND, amount, result, command.idempotency_key)

        total_refunded = refunded + amount
        is_full_refund = total_refunded >= captured
        previous_payment_status = order.payment_status
        txn = record(
            order,
            TransactionType.REFUND,
            TransactionStatus.SUCCESSFUL,
            amount,
            result=result,
            idempotency_key=command.idempotency_key,
            metadata={
                "full_refund": str(is_full_refund).lower(),
                "previous_payment_status": previous_payment_status,
                "total_refunded": total_refunded,
                "remaining_available": captured - total_refunded,
                "reason": command.reason or "",
            },
        )

        transition = None
        if is_full_refund:
            transition = apply_payment_transition(order, PaymentStatus.REFUNDED)
            repo.add(order)

        logger.info(
            "Payment refunded",
            order_id=str(order.id),
            amount=amount,
            total_refunded=total_refunded,
            full_refund=is_full_refund,
        )
        return PaymentOutcome.from_transaction(txn, transition=transition)


def refund_payment(payment_id, amount=None, reason="", idempotency_key=None) -> PaymentOutcome:
    """Refund ``amount`` (default: the whole refundable balance) of a captured payment."""
    outcome = current_domain.process(
        RefundPayment(payment_id=payment_id, amount=amount, reason=reason, idempotency_key=idempotency_key),
        asynchronous=False,
    )
    return finish(outcome)
