"""Currency aggregate and the currency table store.

Exchange rates are expressed relative to the default currency, whose rate
is 1.0. Currency administration lives outside this domain; the aggregate
exposes only the rules the rest of the domain depends on.
"""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, String

from storefront.domain import storefront
from storefront.exceptions import CurrencyNotFound


def round_half_up(value: Decimal) -> int:
    """Round to the nearest minor unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@storefront.aggregate
class Currency:
    code = String(required=True, max_length=3, unique=True)
    name = String(required=True, max_length=100)
    symbol = String(max_length=10)
    exchange_rate = Float(required=True, min_value=0.0)
    is_enabled = Boolean(default=True)
    is_default = Boolean(default=False)

    @classmethod
    def create(cls, code, name, symbol=None, exchange_rate=1.0, is_enabled=True, is_default=False):
        if not code:
            raise ValidationError({"code": ["Currency code is required"]})
        if exchange_rate is None or exchange_rate <= 0:
            raise ValidationError({"exchange_rate": ["Exchange rate must be greater than zero"]})
        return cls(
            code=code.upper(),
            name=name,
            symbol=symbol,
            exchange_rate=exchange_rate,
            # The default currency is always enabled
            is_enabled=is_enabled or is_default,
            is_default=is_default,
        )

    def update_rate(self, rate):
        if rate is None or rate <= 0:
            raise ValidationError({"exchange_rate": ["Exchange rate must be greater than zero"]})
        self.exchange_rate = rate

    def enable(self):
        self.is_enabled = True

    def disable(self):
        if self.is_default:
            raise ValidationError({"is_enabled": ["The default currency cannot be disabled"]})
        self.is_enabled = False

    def convert(self, amount: int, target: "Currency") -> int:
        """Convert an amount in this currency into ``target``."""
        if self.code == target.code:
            return amount
        value = Decimal(amount) * Decimal(str(target.exchange_rate)) / Decimal(str(self.exchange_rate))
        return round_half_up(value)


@storefront.repository(part_of=Currency)
class CurrencyRepository:
    def get_by_code(self, code: str) -> Currency:
        currency = self._dao.query.filter(code=(code or "").upper()).all().first
        if currency is None:
            raise CurrencyNotFound(f"currency {code} not found", field="currency")
        return currency

    def get_default(self) -> Currency:
        currency = self._dao.query.filter(is_default=True).all().first
        if currency is None:
            raise CurrencyNotFound("no default currency configured", field="currency")
        return currency

    def list_enabled(self) -> list[Currency]:
        return self._dao.query.filter(is_enabled=True).all().items

    def list_all(self) -> list[Currency]:
        return self._dao.query.all().items
