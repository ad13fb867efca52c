"""Resolved shipping selection, captured on checkouts and copied onto orders."""

from protean.fields import Boolean, Integer, String

from storefront.domain import storefront


@storefront.value_object
class ShippingOption:
    shipping_method_id = String(required=True, max_length=100)
    shipping_rate_id = String(max_length=100)
    name = String(max_length=255)
    description = String(max_length=500)
    cost = Integer(default=0, min_value=0)
    estimated_delivery_days = Integer()
    free_shipping = Boolean(default=False)
