"""Order aggregate — an immutable snapshot of a converted checkout.

Items, addresses and amounts are fixed when the order is placed. Two
independent status fields then evolve:

    status:          PENDING → PAID → SHIPPED → DELIVERED → COMPLETED
                     (CANCELLED / FAILED on the way)
    payment_status:  PENDING → AUTHORIZED → CAPTURED → REFUNDED
                     (CANCELLED / FAILED on the way)

Fulfilment moves are validated here. Payment moves, and the order status
changes they imply, go through ``storefront.order.state_machine``.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront.domain import storefront
from storefront.exceptions import InvalidStateTransition
from storefront.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentReferenceRecorded,
    PaymentStatusChanged,
)
from storefront.shared.address import Address, CustomerDetails
from storefront.shared.shipping_option import ShippingOption


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"
    FAILED = "failed"


# Fulfilment state machine
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}

TERMINAL_ORDER_STATUSES = frozenset(s for s, targets in _VALID_TRANSITIONS.items() if not targets)


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(max_length=100)
    product_name = String(max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    price = Integer(required=True, min_value=0)
    subtotal = Integer(required=True, min_value=0)
    weight = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    checkout_id = Identifier()
    user_id = Identifier()  # Empty for guest orders
    is_guest = Boolean(default=False)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    customer_details = ValueObject(CustomerDetails)
    currency = String(required=True, max_length=3)
    total_amount = Integer(required=True, min_value=0)
    shipping_cost = Integer(default=0, min_value=0)
    discount_amount = Integer(default=0, min_value=0)
    final_amount = Integer(required=True, min_value=0)
    total_weight = Float(default=0.0)
    shipping_method_id = String(max_length=100)
    shipping_option = ValueObject(ShippingOption)
    discount_code = String(max_length=100)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_id = String(max_length=255)
    payment_provider = String(max_length=50)
    payment_method = String(max_length=50)
    action_url = String(max_length=2000)
    confirmation_sent_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()

    @invariant.post
    def final_amount_must_match_components(self):
        expected = (self.total_amount or 0) + (self.shipping_cost or 0) - (self.discount_amount or 0)
        if self.final_amount != expected:
            raise ValidationError(
                {"final_amount": ["Final amount must equal total amount plus shipping minus discount"]}
            )

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        items_data,
        currency,
        shipping_cost,
        discount_amount,
        shipping_address,
        billing_address,
        customer_details,
        user_id=None,
        checkout_id=None,
        shipping_method_id=None,
        shipping_option=None,
        discount_code=None,
    ):
        """Place an order from a checkout snapshot.

        Args:
            items_data: List of dicts with product_id, variant_id, sku,
                        product_name, variant_name, quantity, price, weight.
            shipping_address / billing_address: ``Address`` value objects.
            customer_details: ``CustomerDetails`` value object.
        """
        if not items_data:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        items = [
            OrderItem(
                product_id=data["product_id"],
                variant_id=data["variant_id"],
                sku=data.get("sku"),
                product_name=data.get("product_name"),
                variant_name=data.get("variant_name"),
                quantity=data["quantity"],
                price=data["price"],
                subtotal=data["price"] * data["quantity"],
                weight=data.get("weight") or 0.0,
            )
            for data in items_data
        ]
        total_amount = sum(item.subtotal for item in items)
        total_weight = sum(item.weight * item.quantity for item in items)
        now = datetime.now(UTC)
        order_id = str(uuid4())

        order = cls(
            id=order_id,
            order_number=f"ORD-{now:%Y%m%d}-{order_id[:8].upper()}",
            checkout_id=checkout_id,
            user_id=user_id,
            is_guest=user_id is None,
            items=items,
            shipping_address=shipping_address,
            billing_address=billing_address,
            customer_details=customer_details,
            currency=currency,
            total_amount=total_amount,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            final_amount=total_amount + shipping_cost - discount_amount,
            total_weight=total_weight,
            shipping_method_id=shipping_method_id,
            shipping_option=shipping_option,
            discount_code=discount_code,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                checkout_id=str(checkout_id) if checkout_id else None,
                user_id=str(user_id) if user_id else None,
                currency=currency,
                final_amount=order.final_amount,
                item_count=sum(item.quantity for item in items),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def customer_email(self) -> str | None:
        return self.customer_details.email if self.customer_details else None

    @property
    def customer_name(self) -> str | None:
        return self.customer_details.full_name if self.customer_details else None

    # -------------------------------------------------------------------
    # Fulfilment status
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if not can_transition_order(current, target_status):
            raise InvalidStateTransition(f"Cannot transition from {current.value} to {target_status.value}")

    def change_status(self, target_status: OrderStatus):
        self._assert_can_transition(target_status)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        if target_status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            self.completed_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_reference(self, payment_id, provider=None, payment_method=None, action_url=None):
        """Remember the gateway's identifier for this order's payment."""
        self.payment_id = payment_id
        self.payment_provider = provider
        if payment_method:
            self.payment_method = payment_method
        self.action_url = action_url
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PaymentReferenceRecorded(
                order_id=str(self.id),
                payment_id=payment_id,
                provider=provider,
                action_url=action_url,
            )
        )

    def set_payment_status(self, target: PaymentStatus):
        """Move ``payment_status``. Callers validate the edge first."""
        previous = self.payment_status
        now = datetime.now(UTC)
        self.payment_status = target.value
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                payment_id=self.payment_id,
                previous_payment_status=previous,
                new_payment_status=target.value,
                order_status=self.status,
                changed_at=now,
            )
        )

    def mark_confirmation_sent(self):
        self.confirmation_sent_at = datetime.now(UTC)
