"""Payment cancellation — void an authorization before it is captured."""

from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InvalidStateTransition
from storefront.order.order import Order, PaymentStatus
from storefront.order.state_machine import apply_payment_transition
from storefront.payments.gateway import get_gateway
from storefront.payments.ledger import (
    PaymentOutcome,
    find_replay,
    finish,
    record,
    record_gateway_failure,
)
from storefront.payments.transaction import PaymentTransaction, TransactionStatus, TransactionType


@storefront.command(part_of="PaymentTransaction")
class CancelPayment:
    payment_id = String(required=True, max_length=255)
    idempotency_key = String(max_length=255)


@storefront.command_handler(part_of=PaymentTransaction)
class CancelPaymentHandler:
    @handle(CancelPayment)
    def cancel_payment(self, command):
        replay = find_replay(command.idempotency_key)
        if replay is not None:
            return replay

        repo = current_domain.repository_for(Order)
        order = repo.get_by_payment_id(command.payment_id)

        if order.payment_status == PaymentStatus.CANCELLED.value:
            raise InvalidStateTransition("payment already cancelled", field="payment_status")
        if order.payment_status != PaymentStatus.AUTHORIZED.value:
            raise InvalidStateTransition(
                "payment can only be cancelled while it is authorized", field="payment_status"
            )

        result = get_gateway().cancel(order.payment_id)
        if not result.success:
            return record_gateway_failure(order, TransactionType.CANCEL, 0, result, command.idempotency_key)

        txn = record(
            order,
            TransactionType.CANCEL,
            TransactionStatus.SUCCESSFUL,
            0,
            result=result,
            idempotency_key=command.idempotency_key,
            metadata={
                "previous_order_status": order.status,
                "previous_payment_status": order.payment_status,
            },
        )
        transition = apply_payment_transition(order, PaymentStatus.CANCELLED)
        repo.add(order)
        return PaymentOutcome.from_transaction(txn, transition=transition)


def cancel_payment(payment_id, idempotency_key=None) -> PaymentOutcome:
    """Void an authorized payment and release the order's stock."""
    outcome = current_domain.process(
        CancelPayment(payment_id=payment_id, idempotency_key=idempotency_key),
        asynchronous=False,
    )
    return finish(outcome)
