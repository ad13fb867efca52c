"""Order notifications sent after a payment is authorized or captured."""

import structlog
from protean.utils.globals import current_domain

from storefront.effects import PostCommitEffect
from storefront.notifications import get_notifier
from storefront.order.order import Order
from storefront.utils.config import admin_email

logger = structlog.get_logger(__name__)


def send_order_confirmation(order_id) -> None:
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    recipient = order.customer_email
    if not recipient:
        raise ValueError(f"order {order.order_number} has no customer email")

    get_notifier().send_order_confirmation(order, recipient)
    order.mark_confirmation_sent()
    repo.add(order)
    logger.info("Order confirmation sent", order_id=str(order_id), recipient=recipient)


def send_admin_notice(order_id) -> None:
    order = current_domain.repository_for(Order).get(order_id)
    get_notifier().send_order_notification(order, admin_email())
    logger.info("Admin order notice sent", order_id=str(order_id))


def notification_effects(order_id) -> list[PostCommitEffect]:
    return [
        PostCommitEffect("order_confirmation", lambda: send_order_confirmation(order_id)),
        PostCommitEffect("admin_notification", lambda: send_admin_notice(order_id)),
    ]
