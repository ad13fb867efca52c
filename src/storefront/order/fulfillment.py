"""Fulfilment status updates (shipping, delivery, manual cancellation)."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InvalidStateTransition
from storefront.order.order import Order, OrderStatus, PaymentStatus

# Payment states whose money or stock must be unwound through the payment commands
_PAYMENT_HELD = {PaymentStatus.AUTHORIZED.value, PaymentStatus.CAPTURED.value}


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)


@storefront.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_id(command.order_id)
        target = OrderStatus(command.status)

        if target is OrderStatus.CANCELLED and order.payment_status in _PAYMENT_HELD:
            raise InvalidStateTransition(
                f"an order with a {order.payment_status} payment must be cancelled or refunded through its payment"
            )

        order.change_status(target)
        repo.add(order)
        return order.status


def update_order_status(order_id, status) -> str:
    return current_domain.process(UpdateOrderStatus(order_id=order_id, status=status), asynchronous=False)
