"""Product variant aggregate: the sellable unit carrying prices and stock.

A variant has a native price in its own currency plus optional explicit
prices for other currencies (at most one per currency). Stock is a
non-negative counter mutated only through the stock ledger.
"""

from protean.exceptions import ExpectedVersionError, ValidationError
from protean.fields import Boolean, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, NotFound
from storefront.utils.config import stock_update_attempts


@storefront.entity(part_of="ProductVariant")
class VariantPrice:
    currency_code = String(required=True, max_length=3)
    price = Integer(required=True, min_value=0)


@storefront.aggregate
class ProductVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100, unique=True)
    name = String(max_length=255)
    product_name = String(max_length=255)
    price = Integer(required=True, min_value=0)
    currency_code = String(required=True, max_length=3)
    prices = HasMany(VariantPrice)
    stock = Integer(default=0, min_value=0)
    weight = Float(default=0.0, min_value=0.0)
    is_default = Boolean(default=False)

    @classmethod
    def create(
        cls,
        product_id,
        sku,
        price,
        currency_code,
        stock=0,
        weight=0.0,
        name=None,
        product_name=None,
        is_default=False,
    ):
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})
        return cls(
            product_id=product_id,
            sku=sku,
            name=name,
            product_name=product_name,
            price=price,
            currency_code=currency_code.upper(),
            stock=stock,
            weight=weight,
            is_default=is_default,
        )

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def set_price(self, currency_code, price):
        """Set the explicit price for a currency, replacing any existing one."""
        if price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})
        code = currency_code.upper()
        if code == self.currency_code:
            self.price = price
            return
        existing = next((p for p in self.prices if p.currency_code == code), None)
        if existing:
            existing.price = price
        else:
            self.add_prices(VariantPrice(currency_code=code, price=price))

    def price_for(self, currency_code) -> int | None:
        """Return the price set for ``currency_code`` without conversion, if any."""
        code = (currency_code or "").upper()
        if code == self.currency_code:
            return self.price
        existing = next((p for p in self.prices if p.currency_code == code), None)
        return existing.price if existing else None

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def adjust_stock(self, delta: int) -> int:
        new_stock = self.stock + delta
        if new_stock < 0:
            raise InsufficientStock(
                f"insufficient stock for {self.sku}: {self.stock} available, {-delta} requested",
                variant_id=str(self.id),
            )
        self.stock = new_stock
        return new_stock


@storefront.repository(part_of=ProductVariant)
class VariantRepository:
    def get_by_sku(self, sku: str) -> ProductVariant:
        variant = self._dao.query.filter(sku=sku).all().first
        if variant is None:
            raise NotFound(f"variant with SKU {sku} not found", field="sku")
        return variant

    def list_by_product(self, product_id) -> list[ProductVariant]:
        return self._dao.query.filter(product_id=str(product_id)).all().items

    def apply_stock_delta(self, variant_id, delta: int) -> int:
        """Apply ``stock += delta`` guarded by the aggregate version.

        The write is rejected when another writer persisted the variant after
        it was read; the delta is then re-applied to a fresh copy. A delta that
        would take stock below zero raises ``InsufficientStock`` and writes nothing.
        """
        attempts = stock_update_attempts()
        for attempt in range(1, attempts + 1):
            variant = self.get_by_id(variant_id)
            new_stock = variant.adjust_stock(delta)
            try:
                self.add(variant)
            except ExpectedVersionError:
                if attempt == attempts:
                    raise
                continue
            return new_stock

    def get_by_id(self, variant_id) -> ProductVariant:
        variant = self._dao.query.filter(id=str(variant_id)).all().first
        if variant is None:
            raise NotFound(f"variant {variant_id} not found", field="variant_id")
        return variant
