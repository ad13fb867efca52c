"""Currency resolution for priced catalogue entities.

An explicit price for the target currency always wins and is returned
untouched. Otherwise the native price is converted through the exchange
rate table and rounded to the nearest minor unit, which keeps repeated
resolutions of the same inputs stable.
"""

from protean.utils.globals import current_domain

from storefront.catalogue.currency import Currency
from storefront.exceptions import CurrencyDisabled, CurrencyNotFound


class ExchangeRateTable:
    """Snapshot of the currency table keyed by currency code."""

    def __init__(self, currencies):
        self._currencies = {c.code.upper(): c for c in currencies}

    @classmethod
    def load(cls) -> "ExchangeRateTable":
        return cls(current_domain.repository_for(Currency).list_all())

    def get(self, code: str) -> Currency:
        currency = self._currencies.get((code or "").upper())
        if currency is None:
            raise CurrencyNotFound(f"currency {code} not found", field="currency")
        return currency

    def require_enabled(self, code: str) -> Currency:
        currency = self.get(code)
        if not currency.is_enabled:
            raise CurrencyDisabled(f"currency {currency.code} is disabled")
        return currency

    def rate_for(self, code: str) -> float:
        return self.get(code).exchange_rate

    def convert(self, amount: int, from_code: str, to_code: str) -> int:
        if (from_code or "").upper() == (to_code or "").upper():
            return amount
        return self.get(from_code).convert(amount, self.get(to_code))


def resolve_price(variant, target_code: str, table: ExchangeRateTable) -> int:
    """Return the variant's price in ``target_code``."""
    target = table.require_enabled(target_code)

    explicit = variant.price_for(target.code)
    if explicit is not None:
        return explicit

    return table.convert(variant.price, variant.currency_code, target.code)
