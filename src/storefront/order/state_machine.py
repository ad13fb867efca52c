"""Applies payment status transitions to an order.

The payment move, the order status it implies and any stock mutation are
made inside the caller's unit of work, so a failed reservation leaves
nothing behind. Notifications are returned as post-commit effects and
only run once the caller's unit of work has committed.
"""

from dataclasses import dataclass, field

import structlog

from storefront.catalogue.stock import StockLedger
from storefront.effects import PostCommitEffect, run_post_commit
from storefront.exceptions import InvalidStateTransition
from storefront.order.notifications import notification_effects
from storefront.order.order import Order, OrderStatus, PaymentStatus, can_transition_order
from storefront.order.transitions import (
    PaymentEffect,
    can_transition_payment,
    effects_for,
    order_status_after_payment,
)

logger = structlog.get_logger(__name__)


@dataclass
class TransitionResult:
    order_id: str
    previous_payment_status: str
    payment_status: str
    previous_status: str
    status: str
    changed: bool = False
    effects: list[PostCommitEffect] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failure: Exception | None = None


def apply_payment_transition(
    order: Order,
    target: PaymentStatus,
    explicit_status: OrderStatus | None = None,
    stock: StockLedger | None = None,
) -> TransitionResult:
    """Move ``order.payment_status`` to ``target`` and apply the edge's side effects.

    An edge missing from the transition table is ignored, unless the caller
    also asked for an explicit order status, in which case it is rejected.
    Raises ``InvalidStateTransition`` for known edges the order's current
    status does not permit, and ``InsufficientStock`` when stock cannot be
    reserved.
    """
    source = PaymentStatus(order.payment_status)
    current_status = OrderStatus(order.status)
    result = TransitionResult(
        order_id=str(order.id),
        previous_payment_status=source.value,
        payment_status=source.value,
        previous_status=current_status.value,
        status=current_status.value,
    )

    edge_effects = effects_for(source, target)
    if edge_effects is None:
        if explicit_status is not None:
            raise InvalidStateTransition(
                f"cannot move payment from {source.value} to {target.value}", field="payment_status"
            )
        logger.warning(
            "Ignoring unknown payment transition",
            order_id=str(order.id),
            from_status=source.value,
            to_status=target.value,
        )
        return result

    if not can_transition_payment(current_status, source, target):
        if target is PaymentStatus.CAPTURED:
            reason = "order must be shipped before payment can be captured"
        else:
            reason = (
                f"cannot move payment from {source.value} to {target.value} "
                f"while order is {current_status.value}"
            )
        raise InvalidStateTransition(reason, field="payment_status")

    implied_status = order_status_after_payment(current_status, target) or current_status
    if (
        explicit_status is not None
        and explicit_status is not implied_status
        and not can_transition_order(implied_status, explicit_status)
    ):
        raise InvalidStateTransition(
            f"order status {explicit_status.value} is incompatible with payment status {target.value}"
        )

    stock = stock or StockLedger()
    if PaymentEffect.RESERVE_STOCK in edge_effects:
        stock.reserve_items(order.items)
    if PaymentEffect.RELEASE_STOCK in edge_effects:
        result.warnings.extend(stock.release_items(order.items))

    order.set_payment_status(target)
    if implied_status is not current_status:
        order.change_status(implied_status)
    if explicit_status is not None and explicit_status is not implied_status:
        order.change_status(explicit_status)

    if PaymentEffect.NOTIFY in edge_effects or (
        PaymentEffect.NOTIFY_IF_UNSENT in edge_effects and order.confirmation_sent_at is None
    ):
        result.effects.extend(notification_effects(str(order.id)))

    result.payment_status = order.payment_status
    result.status = order.status
    result.changed = True

    logger.info(
        "Payment status changed",
        order_id=str(order.id),
        from_status=source.value,
        to_status=target.value,
        order_status=order.status,
    )
    return result


def finish_transition(result: TransitionResult) -> TransitionResult:
    """Run post-commit effects, then re-raise a failure recorded by the handler."""
    result.warnings.extend(run_post_commit(result.effects, order_id=result.order_id))
    if result.failure is not None:
        raise result.failure
    return result
