"""Checkout aggregate (CQRS) — the basket a customer turns into an order.

Line prices are resolved into the checkout's currency when an item is
added and stay frozen from then on. Only a currency change re-prices
every line at once. Totals are always derived from the lines, the
selected shipping option and the applied discount.

A checkout ends exactly once: completed (converted to an order),
abandoned, or expired.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.checkout.events import (
    CheckoutAbandoned,
    CheckoutCompleted,
    CheckoutCurrencyChanged,
    CheckoutDetailsUpdated,
    CheckoutExpired,
    CheckoutItemAdded,
    CheckoutItemRemoved,
    CheckoutItemUpdated,
    CheckoutStarted,
    DiscountApplied,
    DiscountRemoved,
    ShippingMethodSelected,
)
from storefront.domain import storefront
from storefront.exceptions import CheckoutNotActive, NotFound
from storefront.shared.address import Address, CustomerDetails
from storefront.shared.shipping_option import ShippingOption


class CheckoutStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@storefront.value_object(part_of="Checkout")
class AppliedDiscount:
    """A discount code and the amount it was worth when applied."""

    discount_id = Identifier(required=True)
    code = String(required=True, max_length=100)
    amount = Integer(required=True, min_value=0)


@storefront.entity(part_of="Checkout")
class CheckoutItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(max_length=100)
    product_name = String(max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    price = Integer(required=True, min_value=0)  # Frozen, in the checkout currency
    weight = Float(default=0.0)

    @property
    def subtotal(self) -> int:
        return self.price * self.quantity


@storefront.aggregate
class Checkout:
    session_id = String(max_length=255)  # Guest checkouts
    user_id = Identifier()
    items = HasMany(CheckoutItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    customer_details = ValueObject(CustomerDetails)
    shipping_method_id = String(max_length=100)
    shipping_option = ValueObject(ShippingOption)
    currency = String(required=True, max_length=3)
    applied_discount = ValueObject(AppliedDiscount)
    total_amount = Integer(default=0)
    total_weight = Float(default=0.0)
    shipping_cost = Integer(default=0)
    discount_amount = Integer(default=0)
    final_amount = Integer(default=0)
    status = String(choices=CheckoutStatus, default=CheckoutStatus.ACTIVE.value)
    expires_at = DateTime()
    last_activity_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()
    converted_order_id = Identifier()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, currency, session_id=None, user_id=None, ttl_hours=24):
        if not session_id and not user_id:
            raise ValidationError({"checkout": ["A checkout needs a session id or a user id"]})

        now = datetime.now(UTC)
        checkout = cls(
            session_id=session_id,
            user_id=user_id,
            currency=currency.upper(),
            status=CheckoutStatus.ACTIVE.value,
            expires_at=now + timedelta(hours=ttl_hours),
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )
        checkout.raise_(
            CheckoutStarted(
                checkout_id=str(checkout.id),
                session_id=session_id,
                user_id=str(user_id) if user_id else None,
                currency=checkout.currency,
                expires_at=checkout.expires_at,
            )
        )
        return checkout

    # -------------------------------------------------------------------
    # Lifecycle helpers
    # -------------------------------------------------------------------
    def is_expired(self, now=None) -> bool:
        now = now or datetime.now(UTC)
        return self.expires_at is not None and now > _aware(self.expires_at)

    def extend_expiry(self, hours):
        self._ensure_active()
        now = datetime.now(UTC)
        self.expires_at = now + timedelta(hours=hours)
        self._touch(now)

    def has_customer_info(self) -> bool:
        return self.customer_details is not None and self.customer_details.has_any()

    def has_shipping_info(self) -> bool:
        return self.shipping_address is not None and self.shipping_address.has_any()

    def should_be_abandoned(self, idle_minutes=15, now=None) -> bool:
        """Active, carrying contact or shipping info, and idle past the threshold."""
        if self.status != CheckoutStatus.ACTIVE.value:
            return False
        if not (self.has_customer_info() or self.has_shipping_info()):
            return False
        now = now or datetime.now(UTC)
        return _aware(self.last_activity_at) < now - timedelta(minutes=idle_minutes)

    def _ensure_active(self):
        if self.status != CheckoutStatus.ACTIVE.value:
            raise CheckoutNotActive(f"checkout is {self.status}", field="checkout")
        if self.is_expired():
            raise CheckoutNotActive("checkout has expired", field="checkout")

    def _touch(self, now=None):
        now = now or datetime.now(UTC)
        self.last_activity_at = now
        self.updated_at = now

    def _recalculate(self):
        self.total_amount = sum(item.subtotal for item in self.items)
        self.total_weight = sum((item.weight or 0.0) * item.quantity for item in self.items)
        self.final_amount = max(self.total_amount + self.shipping_cost - self.discount_amount, 0)

    def _find_item(self, variant_id):
        item = next((i for i in self.items if str(i.variant_id) == str(variant_id)), None)
        if item is None:
            raise ValidationError({"variant_id": ["product not found in checkout"]})
        return item

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        variant_id,
        quantity,
        price,
        weight=0.0,
        sku=None,
        product_name=None,
        variant_name=None,
    ):
        """Add a line at ``price`` or increase the quantity of an existing one."""
        self._ensure_active()
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
        if price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})

        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and str(i.variant_id) == str(variant_id)
            ),
            None,
        )
        if existing:
            existing.quantity += quantity
        else:
            self.add_items(
                CheckoutItem(
                    product_id=product_id,
                    variant_id=variant_id,
                    sku=sku,
                    product_name=product_name,
                    variant_name=variant_name,
                    quantity=quantity,
                    price=price,
                    weight=weight or 0.0,
                )
            )

        self._recalculate()
        self._touch()
        self.raise_(
            CheckoutItemAdded(
                checkout_id=str(self.id),
                product_id=str(product_id),
                variant_id=str(variant_id),
                quantity=quantity,
                price=existing.price if existing else price,
                currency=self.currency,
            )
        )

    def update_item(self, variant_id, quantity):
        self._ensure_active()
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

        item = self._find_item(variant_id)
        previous_quantity = item.quantity
        item.quantity = quantity

        self._recalculate()
        self._touch()
        self.raise_(
            CheckoutItemUpdated(
                checkout_id=str(self.id),
                variant_id=str(variant_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, variant_id):
        self._ensure_active()
        item = self._find_item(variant_id)
        self.remove_items(item)

        self._recalculate()
        self._touch()
        self.raise_(CheckoutItemRemoved(checkout_id=str(self.id), variant_id=str(variant_id)))

    # -------------------------------------------------------------------
    # Addresses and contact details
    # -------------------------------------------------------------------
    def set_shipping_address(self, address: Address):
        self._ensure_active()
        self.shipping_address = address
        self._touch()
        self.raise_(CheckoutDetailsUpdated(checkout_id=str(self.id), section="shipping_address"))

    def set_billing_address(self, address: Address):
        self._ensure_active()
        self.billing_address = address
        self._touch()
        self.raise_(CheckoutDetailsUpdated(checkout_id=str(self.id), section="billing_address"))

    def set_customer_details(self, details: CustomerDetails):
        self._ensure_active()
        self.customer_details = details
        self._touch()
        self.raise_(CheckoutDetailsUpdated(checkout_id=str(self.id), section="customer_details"))

    # -------------------------------------------------------------------
    # Shipping, discount and currency
    # -------------------------------------------------------------------
    def set_shipping_option(self, option: ShippingOption):
        self._ensure_active()
        if not self.has_shipping_info():
            raise ValidationError({"shipping_address": ["A shipping address is required before choosing shipping"]})

        self.shipping_method_id = option.shipping_method_id
        self.shipping_option = option
        self.shipping_cost = option.cost

        self._recalculate()
        self._touch()
        self.raise_(
            ShippingMethodSelected(
                checkout_id=str(self.id),
                shipping_method_id=option.shipping_method_id,
                shipping_cost=option.cost,
            )
        )

    def apply_discount(self, discount_id, code, amount):
        self._ensure_active()
        self.applied_discount = AppliedDiscount(discount_id=discount_id, code=code, amount=amount)
        self.discount_amount = amount

        self._recalculate()
        self._touch()
        self.raise_(DiscountApplied(checkout_id=str(self.id), discount_id=str(discount_id), code=code, amount=amount))

    def remove_discount(self):
        self._ensure_active()
        code = self.applied_discount.code if self.applied_discount else None
        self.applied_discount = None
        self.discount_amount = 0

        self._recalculate()
        self._touch()
        self.raise_(DiscountRemoved(checkout_id=str(self.id), code=code))

    def change_currency(self, currency, item_prices, shipping_cost, discount_amount):
        """Re-price every line at once.

        Args:
            currency: New currency code.
            item_prices: Mapping of variant id to the line's price in ``currency``.
            shipping_cost / discount_amount: Converted amounts in ``currency``.
        """
        self._ensure_active()
        previous = self.currency
        for item in self.items:
            item.price = item_prices[str(item.variant_id)]

        self.currency = currency.upper()
        self.shipping_cost = shipping_cost
        if self.shipping_option is not None:
            option = self.shipping_option
            self.shipping_option = ShippingOption(
                shipping_method_id=option.shipping_method_id,
                shipping_rate_id=option.shipping_rate_id,
                name=option.name,
                description=option.description,
                cost=shipping_cost,
                estimated_delivery_days=option.estimated_delivery_days,
                free_shipping=option.free_shipping,
            )
        self.discount_amount = discount_amount
        if self.applied_discount is not None:
            self.applied_discount = AppliedDiscount(
                discount_id=self.applied_discount.discount_id,
                code=self.applied_discount.code,
                amount=discount_amount,
            )

        self._recalculate()
        self._touch()
        self.raise_(
            CheckoutCurrencyChanged(
                checkout_id=str(self.id),
                previous_currency=previous,
                new_currency=self.currency,
                final_amount=self.final_amount,
            )
        )

    # -------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------
    def mark_completed(self, order_id):
        self._ensure_active()
        now = datetime.now(UTC)
        self.status = CheckoutStatus.COMPLETED.value
        self.converted_order_id = order_id
        self.completed_at = now
        self._touch(now)
        self.raise_(CheckoutCompleted(checkout_id=str(self.id), order_id=str(order_id), completed_at=now))

    def mark_abandoned(self):
        if self.status != CheckoutStatus.ACTIVE.value:
            raise CheckoutNotActive(f"checkout is {self.status}", field="checkout")
        now = datetime.now(UTC)
        self.status = CheckoutStatus.ABANDONED.value
        self._touch(now)
        self.raise_(CheckoutAbandoned(checkout_id=str(self.id), abandoned_at=now))

    def mark_expired(self):
        if self.status != CheckoutStatus.ACTIVE.value:
            raise CheckoutNotActive(f"checkout is {self.status}", field="checkout")
        now = datetime.now(UTC)
        self.status = CheckoutStatus.EXPIRED.value
        self._touch(now)
        self.raise_(CheckoutExpired(checkout_id=str(self.id), expired_at=now))


@storefront.repository(part_of=Checkout)
class CheckoutRepository:
    def get_by_id(self, checkout_id) -> Checkout:
        checkout = self._dao.query.filter(id=str(checkout_id)).all().first
        if checkout is None:
            raise NotFound(f"checkout {checkout_id} not found", field="checkout_id")
        return checkout

    def get_active_by_session(self, session_id) -> Checkout | None:
        return self._dao.query.filter(session_id=session_id, status=CheckoutStatus.ACTIVE.value).all().first

    def get_active_by_user(self, user_id) -> Checkout | None:
        return self._dao.query.filter(user_id=str(user_id), status=CheckoutStatus.ACTIVE.value).all().first

    def list_active(self) -> list[Checkout]:
        return self._dao.query.filter(status=CheckoutStatus.ACTIVE.value).all().items
