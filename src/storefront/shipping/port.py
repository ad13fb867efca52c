"""Shipping rate provider port.

Shipping zones, methods and rate tables are administered elsewhere; the
checkout only needs a quote for a chosen method and destination.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingQuote:
    shipping_method_id: str
    name: str
    cost: int
    currency: str
    shipping_rate_id: str | None = None
    description: str | None = None
    estimated_delivery_days: int | None = None
    free_shipping: bool = False


class ShippingRateProvider(ABC):
    @abstractmethod
    def quote(
        self,
        shipping_method_id: str,
        address,
        total_amount: int,
        total_weight: float,
        currency: str,
    ) -> ShippingQuote | None:
        """Quote a method for a destination, or ``None`` if it does not ship there."""
        ...
