"""Domain events for the Checkout aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Checkout")
class CheckoutStarted:
    __version__ = 1

    checkout_id = Identifier(required=True)
    session_id = String()
    user_id = Identifier()
    currency = String(required=True)
    expires_at = DateTime(required=True)


@storefront.event(part_of="Checkout")
class CheckoutItemAdded:
    __version__ = 1

    checkout_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    price = Integer(required=True)
    currency = String(required=True)


@storefront.event(part_of="Checkout")
class CheckoutItemUpdated:
    __version__ = 1

    checkout_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="Checkout")
class CheckoutItemRemoved:
    __version__ = 1

    checkout_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@storefront.event(part_of="Checkout")
class CheckoutDetailsUpdated:
    """Shipping address, billing address or customer details changed."""

    __version__ = 1

    checkout_id = Identifier(required=True)
    section = String(required=True)


@storefront.event(part_of="Checkout")
class ShippingMethodSelected:
    __version__ = 1

    checkout_id = Identifier(required=True)
    shipping_method_id = String(required=True)
    shipping_cost = Integer(required=True)


@storefront.event(part_of="Checkout")
class DiscountApplied:
    __version__ = 1

    checkout_id = Identifier(required=True)
    discount_id = Identifier(required=True)
    code = String(required=True)
    amount = Integer(required=True)


@storefront.event(part_of="Checkout")
class DiscountRemoved:
    __version__ = 1

    checkout_id = Identifier(required=True)
    code = String()


@storefront.event(part_of="Checkout")
class CheckoutCurrencyChanged:
    __version__ = 1

    checkout_id = Identifier(required=True)
    previous_currency = String(required=True)
    new_currency = String(required=True)
    final_amount = Integer(required=True)


@storefront.event(part_of="Checkout")
class CheckoutCompleted:
    __version__ = 1

    checkout_id = Identifier(required=True)
    order_id = Identifier(required=True)
    completed_at = DateTime(required=True)


@storefront.event(part_of="Checkout")
class CheckoutAbandoned:
    __version__ = 1

    checkout_id = Identifier(required=True)
    abandoned_at = DateTime(required=True)


@storefront.event(part_of="Checkout")
class CheckoutExpired:
    __version__ = 1

    checkout_id = Identifier(required=True)
    expired_at = DateTime(required=True)
