"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order was created from a completed checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    checkout_id = Identifier()
    user_id = Identifier()
    currency = String(required=True)
    final_amount = Integer(required=True)
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentStatusChanged:
    """The money-flow status of an order moved along a payment transition."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    previous_payment_status = String(required=True)
    new_payment_status = String(required=True)
    order_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentReferenceRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String(required=True)
    provider = String()
    action_url = String()
