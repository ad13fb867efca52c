"""Order store queries."""

from storefront.domain import storefront
from storefront.exceptions import NotFound
from storefront.order.order import Order, OrderStatus


@storefront.repository(part_of=Order)
class OrderRepository:
    def get_by_id(self, order_id) -> Order:
        order = self._dao.query.filter(id=str(order_id)).all().first
        if order is None:
            raise NotFound(f"order {order_id} not found", field="order_id")
        return order

    def get_by_payment_id(self, payment_id: str) -> Order:
        order = self._dao.query.filter(payment_id=payment_id).all().first if payment_id else None
        if order is None:
            raise NotFound(f"no order found for payment {payment_id}", field="payment_id")
        return order

    def list_by_status(self, status: OrderStatus | str) -> list[Order]:
        value = status.value if isinstance(status, OrderStatus) else status
        return self._dao.query.filter(status=value).order_by("-created_at").all().items
