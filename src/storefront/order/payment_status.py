"""Payment status updates driven by gateway callbacks.

A callback may be delivered more than once or race with another one for
the same order. Callers that read the order before deciding can pass
``expected_payment_status`` to have the update rejected when the stored
status moved in between.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, InvalidStateTransition, NotFound
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.order.state_machine import TransitionResult, apply_payment_transition, finish_transition
from storefront.payments.authorization import void_unreservable_authorization
from storefront.payments.ledger import transactions
from storefront.payments.transaction import TransactionStatus

logger = structlog.get_logger(__name__)

# Ledger status a pending transaction resolves to when the payment lands in a status
_RESOLVED_TRANSACTION_STATUS = {
    PaymentStatus.AUTHORIZED: TransactionStatus.SUCCESSFUL,
    PaymentStatus.CAPTURED: TransactionStatus.SUCCESSFUL,
    PaymentStatus.REFUNDED: TransactionStatus.SUCCESSFUL,
    PaymentStatus.CANCELLED: TransactionStatus.SUCCESSFUL,
    PaymentStatus.FAILED: TransactionStatus.FAILED,
}


@storefront.command(part_of="Order")
class UpdatePaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, choices=PaymentStatus)
    status = String(choices=OrderStatus)  # Optional explicit order status
    transaction_id = String(max_length=50)  # Pending ledger entry this update settles
    expected_payment_status = String(choices=PaymentStatus)


def _resolve_pending_transaction(transaction_id, target: PaymentStatus) -> list[str]:
    repo = transactions()
    try:
        txn = repo.get_by_transaction_id(transaction_id)
        txn.resolve(_RESOLVED_TRANSACTION_STATUS[target])
    except (NotFound, InvalidStateTransition) as exc:
        logger.warning("Failed to resolve payment transaction", transaction_id=transaction_id, error=exc.reason)
        return [f"resolve_transaction[{transaction_id}]: {exc.reason}"]
    repo.add(txn)
    return []


@storefront.command_handler(part_of=Order)
class UpdatePaymentStatusHandler:
    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_id(command.order_id)

        if command.expected_payment_status and order.payment_status != command.expected_payment_status:
            raise InvalidStateTransition(
                f"payment status changed from {command.expected_payment_status} to "
                f"{order.payment_status} since it was read",
                field="payment_status",
            )

        target = PaymentStatus(command.payment_status)
        explicit_status = OrderStatus(command.status) if command.status else None

        try:
            result = apply_payment_transition(order, target, explicit_status)
        except InsufficientStock as exc:
            result = void_unreservable_authorization(order, exc)

        if result.changed and command.transaction_id:
            settled = PaymentStatus(result.payment_status)
            result.warnings.extend(_resolve_pending_transaction(command.transaction_id, settled))

        if result.changed:
            repo.add(order)
        return result


def update_payment_status(
    order_id,
    payment_status,
    status=None,
    transaction_id=None,
    expected_payment_status=None,
) -> TransitionResult:
    """Move an order's payment status and apply the transition's side effects.

    Returns the transition result; ``changed`` is false when the move was not
    a known edge and was ignored. Notification failures come back as
    ``warnings``.
    """
    result = current_domain.process(
        UpdatePaymentStatus(
            order_id=order_id,
            payment_status=payment_status,
            status=status,
            transaction_id=transaction_id,
            expected_payment_status=expected_payment_status,
        ),
        asynchronous=False,
    )
    return finish_transition(result)
