"""In-memory flat-rate shipping provider for development and testing."""

from dataclasses import dataclass, field

from storefront.shipping.port import ShippingQuote, ShippingRateProvider


@dataclass
class FlatRate:
    method_id: str
    name: str
    cost: int
    currency: str = "USD"
    countries: set[str] = field(default_factory=set)  # empty ships everywhere
    free_over: int | None = None
    estimated_delivery_days: int | None = None


class FlatRateShipping(ShippingRateProvider):
    def __init__(self) -> None:
        self.rates: dict[str, FlatRate] = {}
        self.calls: list[dict] = []

    def add_rate(self, rate: FlatRate) -> None:
        self.rates[rate.method_id] = rate

    def quote(self, shipping_method_id, address, total_amount, total_weight, currency):
        self.calls.append(
            {
                "method": "quote",
                "shipping_method_id": shipping_method_id,
                "country": getattr(address, "country", None),
                "total_amount": total_amount,
                "total_weight": total_weight,
                "currency": currency,
            }
        )
        rate = self.rates.get(shipping_method_id)
        if rate is None:
            return None
        if rate.countries and getattr(address, "country", None) not in rate.countries:
            return None

        free = rate.free_over is not None and total_amount >= rate.free_over
        return ShippingQuote(
            shipping_method_id=rate.method_id,
            shipping_rate_id=f"rate-{rate.method_id}",
            name=rate.name,
            cost=0 if free else rate.cost,
            currency=rate.currency,
            estimated_delivery_days=rate.estimated_delivery_days,
            free_shipping=free,
        )
