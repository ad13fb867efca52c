"""Payment status transition table.

Every permitted ``(from, to)`` pair of payment statuses is listed with the
side effects it carries. A pair missing from the table is not a known edge.
Stock only moves across the authorize/de-authorize boundary.
"""

from enum import Enum

from storefront.order.order import TERMINAL_ORDER_STATUSES, OrderStatus, PaymentStatus


class PaymentEffect(Enum):
    RESERVE_STOCK = "reserve_stock"
    RELEASE_STOCK = "release_stock"
    NOTIFY = "notify"
    NOTIFY_IF_UNSENT = "notify_if_unsent"


PAYMENT_TRANSITIONS: dict[tuple[PaymentStatus, PaymentStatus], frozenset[PaymentEffect]] = {
    (PaymentStatus.PENDING, PaymentStatus.AUTHORIZED): frozenset(
        {PaymentEffect.RESERVE_STOCK, PaymentEffect.NOTIFY}
    ),
    (PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED): frozenset({PaymentEffect.NOTIFY_IF_UNSENT}),
    (PaymentStatus.AUTHORIZED, PaymentStatus.CANCELLED): frozenset({PaymentEffect.RELEASE_STOCK}),
    (PaymentStatus.AUTHORIZED, PaymentStatus.FAILED): frozenset({PaymentEffect.RELEASE_STOCK}),
    (PaymentStatus.AUTHORIZED, PaymentStatus.REFUNDED): frozenset({PaymentEffect.RELEASE_STOCK}),
    (PaymentStatus.CAPTURED, PaymentStatus.REFUNDED): frozenset({PaymentEffect.RELEASE_STOCK}),
    (PaymentStatus.PENDING, PaymentStatus.CANCELLED): frozenset(),
    (PaymentStatus.PENDING, PaymentStatus.FAILED): frozenset(),
}

# Order status required (or allowed) for a payment edge, beyond the edge existing
_REQUIRED_ORDER_STATUS = {
    PaymentStatus.AUTHORIZED: {OrderStatus.PENDING},
    PaymentStatus.CAPTURED: {OrderStatus.SHIPPED},
}

# Refunds may follow a completed or delivered order
_REFUND_ORDER_STATUSES = {
    OrderStatus.PAID,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
}

# Order status an accepted payment move leads to, by current order status
_ORDER_STATUS_AFTER_PAYMENT = {
    PaymentStatus.AUTHORIZED: {OrderStatus.PENDING: OrderStatus.PAID},
    PaymentStatus.FAILED: {OrderStatus.PENDING: OrderStatus.FAILED, OrderStatus.PAID: OrderStatus.CANCELLED},
    PaymentStatus.CAPTURED: {OrderStatus.SHIPPED: OrderStatus.COMPLETED},
    PaymentStatus.CANCELLED: {OrderStatus.PENDING: OrderStatus.CANCELLED, OrderStatus.PAID: OrderStatus.CANCELLED},
}


def effects_for(source: PaymentStatus, target: PaymentStatus) -> frozenset[PaymentEffect] | None:
    """Side effects of a payment edge, or ``None`` when the edge is unknown."""
    return PAYMENT_TRANSITIONS.get((source, target))


def can_transition_payment(order_status: OrderStatus, source: PaymentStatus, target: PaymentStatus) -> bool:
    """Whether ``source → target`` is a known edge permitted for an order in ``order_status``."""
    if (source, target) not in PAYMENT_TRANSITIONS:
        return False

    required = _REQUIRED_ORDER_STATUS.get(target)
    if required is not None:
        return order_status in required

    if target is PaymentStatus.REFUNDED:
        return order_status in _REFUND_ORDER_STATUSES

    return order_status not in TERMINAL_ORDER_STATUSES


def order_status_after_payment(order_status: OrderStatus, target: PaymentStatus) -> OrderStatus | None:
    """Order status implied by moving the payment to ``target``, if it changes."""
    return _ORDER_STATUS_AFTER_PAYMENT.get(target, {}).get(order_status)
