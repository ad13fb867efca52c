"""Payment capture — transfer authorized funds once the order has shipped.

Captures may be partial. The payment only becomes ``captured`` when the
successful captures for the order add up to its final amount.
"""

import structlog
from protean import handle
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import AmountOutOfRange, InvalidStateTransition
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.order.state_machine import apply_payment_transition
from storefront.payments.gateway import get_gateway
from storefront.payments.ledger import (
    PaymentOutcome,
    captured_total,
    find_replay,
    finish,
    record,
    record_gateway_failure,
)
from storefront.payments.transaction import PaymentTransaction, TransactionStatus, TransactionType

logger = structlog.get_logger(__name__)


def _validate_capture(order: Order, amount: int, already_captured: int) -> None:
    if order.payment_status == PaymentStatus.CAPTURED.value:
        raise InvalidStateTransition("payment already captured for this order", field="payment_status")
    if order.payment_status != PaymentStatus.AUTHORIZED.value:
        raise InvalidStateTransition("payment must be authorized before capture", field="payment_status")
    if order.status != OrderStatus.SHIPPED.value:
        raise InvalidStateTransition("order must be shipped before payment can be captured")
    if amount <= 0:
        raise AmountOutOfRange("capture amount must be greater than zero")
    if amount > order.final_amount:
        raise AmountOutOfRange("capture amount cannot exceed the original payment amount")
    if already_captured + amount > order.final_amount:
        raise AmountOutOfRange("capture amount exceeds the remaining authorized amount")


@storefront.command(part_of="PaymentTransaction")
class CapturePayment:
    payment_id = String(required=True, max_length=255)
    amount = Integer()  # Defaults to the remaining authorized amount
    idempotency_key = String(max_length=255)


@storefront.command_handler(part_of=PaymentTransaction)
class CapturePaymentHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        replay = find_replay(command.idempotency_key)
        if replay is not None:
            return replay

        repo = current_domain.repository_for(Order)
        order = repo.get_by_payment_id(command.payment_id)

        already_captured = captured_total(order.id)
        amount = command.amount if command.amount is not None else order.final_amount - already_captured
        _validate_capture(order, amount, already_captured)

        result = get_gateway().capture(order.payment_id, amount, order.currency)
        if not result.success:
            return record_gateway_failure(order, TransactionType.CAPTURE, amount, result, command.idempotency_key)

        total_captured = already_captured + amount
        is_full_capture = total_captured >= order.final_amount
        txn = record(
            order,
            TransactionType.CAPTURE,
            TransactionStatus.SUCCESSFUL,
            amount,
            result=result,
            idempotency_key=command.idempotency_key,
            metadata={
                "full_capture": str(is_full_capture).lower(),
                "remaining_amount": order.final_amount - total_captured,
            },
        )

        transition = None
        if is_full_capture:
            transition = apply_payment_transition(order, PaymentStatus.CAPTURED)
            repo.add(order)

        logger.info(
            "Payment captured",
            order_id=str(order.id),
            amount=amount,
            total_captured=total_captured,
            full_capture=is_full_capture,
        )
        return PaymentOutcome.from_transaction(txn, transition=transition)


def capture_payment(payment_id, amount=None, idempotency_key=None) -> PaymentOutcome:
    """Capture ``amount`` (default: everything still uncaptured) of an authorized payment."""
    outcome = current_domain.process(
        CapturePayment(payment_id=payment_id, amount=amount, idempotency_key=idempotency_key),
        asynchronous=False,
    )
    return finish(outcome)
