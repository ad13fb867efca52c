"""Payment authorization — reserve funds at the gateway and stock in the store.

When the gateway authorizes but the order's stock can no longer be
reserved, the authorization is voided at the gateway and the payment is
marked failed instead of leaving funds held against unavailable stock.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, InvalidStateTransition
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.order.state_machine import TransitionResult, apply_payment_transition
from storefront.payments.gateway import get_gateway
from storefront.payments.ledger import (
    PaymentOutcome,
    find_replay,
    finish,
    record,
    record_gateway_failure,
)
from storefront.payments.transaction import PaymentTransaction, TransactionStatus, TransactionType

logger = structlog.get_logger(__name__)


def void_unreservable_authorization(order: Order, error: InsufficientStock) -> TransitionResult:
    """Release the gateway hold for an order whose stock could not be reserved.

    Records the cancel attempt and moves the payment from pending to failed.
    A gateway refusal to void is recorded too, and flagged as a warning.
    """
    warnings = []
    if order.payment_id:
        result = get_gateway().cancel(order.payment_id)
        status = TransactionStatus.SUCCESSFUL if result.success else TransactionStatus.FAILED
        metadata = {"reason": "insufficient_stock", "error": str(error.reason)}
        if not result.success:
            metadata["void_error"] = result.message or "payment gateway error"
            warnings.append(f"void_authorization: {metadata['void_error']}")
        record(order, TransactionType.CANCEL, status, 0, result=result, metadata=metadata)

    logger.warning(
        "Voided authorization after failed stock reservation",
        order_id=str(order.id),
        payment_id=order.payment_id,
        error=error.reason,
    )

    transition = apply_payment_transition(order, PaymentStatus.FAILED)
    transition.warnings.extend(warnings)
    transition.failure = error
    return transition


@storefront.command(part_of="PaymentTransaction")
class AuthorizePayment:
    order_id = Identifier(required=True)
    payment_method = String(required=True, max_length=50)
    idempotency_key = String(max_length=255)


@storefront.command_handler(part_of=PaymentTransaction)
class AuthorizePaymentHandler:
    @handle(AuthorizePayment)
    def authorize_payment(self, command):
        replay = find_replay(command.idempotency_key)
        if replay is not None:
            return replay

        repo = current_domain.repository_for(Order)
        order = repo.get_by_id(command.order_id)

        if order.payment_status != PaymentStatus.PENDING.value:
            raise InvalidStateTransition(
                f"payment is already {order.payment_status}", field="payment_status"
            )
        if order.status != OrderStatus.PENDING.value:
            raise InvalidStateTransition(f"cannot authorize payment for a {order.status} order")

        gateway = get_gateway()
        result = gateway.authorize(
            amount=order.final_amount,
            currency=order.currency,
            payment_method=command.payment_method,
            reference=order.order_number,
            idempotency_key=command.idempotency_key,
        )

        if not result.success:
            return record_gateway_failure(
                order, TransactionType.AUTHORIZE, order.final_amount, result, command.idempotency_key
            )

        order.record_payment_reference(
            payment_id=result.transaction_id,
            provider=gateway.name,
            payment_method=command.payment_method,
            action_url=result.action_url if result.requires_action else None,
        )

        if result.requires_action:
            txn = record(
                order,
                TransactionType.AUTHORIZE,
                TransactionStatus.PENDING,
                order.final_amount,
                result=result,
                idempotency_key=command.idempotency_key,
                metadata={"requires_action": "true", "action_url": result.action_url},
            )
            repo.add(order)
            return PaymentOutcome.from_transaction(txn)

        txn = record(
            order,
            TransactionType.AUTHORIZE,
            TransactionStatus.SUCCESSFUL,
            order.final_amount,
            result=result,
            idempotency_key=command.idempotency_key,
        )
        try:
            transition = apply_payment_transition(order, PaymentStatus.AUTHORIZED)
        except InsufficientStock as exc:
            transition = void_unreservable_authorization(order, exc)

        repo.add(order)
        return PaymentOutcome.from_transaction(txn, transition=transition)


def authorize_payment(order_id, payment_method, idempotency_key=None) -> PaymentOutcome:
    """Authorize an order's final amount with the payment gateway.

    Returns a pending outcome carrying ``action_url`` when the customer must
    complete an extra step. Raises ``GatewayError`` when the gateway declines,
    and ``InsufficientStock`` when the authorization had to be voided.
    """
    outcome = current_domain.process(
        AuthorizePayment(order_id=order_id, payment_method=payment_method, idempotency_key=idempotency_key),
        asynchronous=False,
    )
    return finish(outcome)
