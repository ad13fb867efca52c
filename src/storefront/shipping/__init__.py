"""Shipping rate provider factory.

get_shipping_provider() / set_shipping_provider() swap implementations;
FlatRateShipping is the default.
"""

from storefront.shipping.flat_rate import FlatRateShipping
from storefront.shipping.port import ShippingRateProvider

_current_provider: ShippingRateProvider | None = None


def get_shipping_provider() -> ShippingRateProvider:
    """Return the current shipping provider. Defaults to FlatRateShipping."""
    global _current_provider
    if _current_provider is None:
        _current_provider = FlatRateShipping()
    return _current_provider


def set_shipping_provider(provider: ShippingRateProvider) -> None:
    global _current_provider
    _current_provider = provider


def reset_shipping_provider() -> None:
    global _current_provider
    _current_provider = None
