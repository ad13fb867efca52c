"""Discount aggregate — basket or product-level promotions.

Discount administration is handled elsewhere; checkouts only look codes up,
compute the amount they are worth, and bump usage after an order is placed.
Fixed values are expressed in minor units of the default currency.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from storefront.catalogue.currency import round_half_up
from storefront.domain import storefront
from storefront.exceptions import NotFound


class DiscountType(Enum):
    BASKET = "basket"
    PRODUCT = "product"


class DiscountMethod(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


def _aware(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@storefront.aggregate
class Discount:
    code = String(required=True, max_length=100, unique=True)
    type = String(choices=DiscountType, default=DiscountType.BASKET.value)
    method = String(choices=DiscountMethod, default=DiscountMethod.FIXED.value)
    value = Float(required=True, min_value=0.0)
    min_order_value = Integer(default=0, min_value=0)
    max_discount_value = Integer(default=0, min_value=0)
    product_ids = Text()  # JSON array of product ids
    starts_at = DateTime()
    ends_at = DateTime()
    usage_limit = Integer(default=0, min_value=0)
    current_usage = Integer(default=0, min_value=0)
    active = Boolean(default=True)

    @classmethod
    def create(
        cls,
        code,
        value,
        type=DiscountType.BASKET.value,
        method=DiscountMethod.FIXED.value,
        min_order_value=0,
        max_discount_value=0,
        product_ids=None,
        starts_at=None,
        ends_at=None,
        usage_limit=0,
    ):
        if value <= 0:
            raise ValidationError({"value": ["Discount value must be greater than zero"]})
        if method == DiscountMethod.PERCENTAGE.value and value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100%"]})
        if type == DiscountType.PRODUCT.value and not product_ids:
            raise ValidationError({"product_ids": ["Product discount must name at least one product"]})
        if starts_at and ends_at and ends_at < starts_at:
            raise ValidationError({"ends_at": ["End date cannot be before start date"]})
        return cls(
            code=code.upper(),
            value=value,
            type=type,
            method=method,
            min_order_value=min_order_value,
            max_discount_value=max_discount_value,
            product_ids=json.dumps([str(p) for p in (product_ids or [])]),
            starts_at=starts_at,
            ends_at=ends_at,
            usage_limit=usage_limit,
            current_usage=0,
            active=True,
        )

    @property
    def eligible_product_ids(self) -> set[str]:
        return set(json.loads(self.product_ids or "[]"))

    def is_valid(self, at=None) -> bool:
        now = at or datetime.now(UTC)
        if not self.active:
            return False
        if self.starts_at and now < _aware(self.starts_at):
            return False
        if self.ends_at and now > _aware(self.ends_at):
            return False
        return self.usage_limit == 0 or self.current_usage < self.usage_limit

    def is_applicable(self, total_amount, items, at=None) -> bool:
        if not self.is_valid(at):
            return False
        if self.min_order_value and total_amount < self.min_order_value:
            return False
        if self.type == DiscountType.PRODUCT.value:
            eligible = self.eligible_product_ids
            return any(str(item.product_id) in eligible for item in items)
        return True

    def calculate(self, total_amount, items, fixed_value=None, at=None) -> int:
        """Amount this discount is worth against an order total and its lines.

        ``fixed_value`` overrides ``value`` for fixed discounts, allowing callers
        to pass the value already converted into the order's currency.
        """
        if not self.is_applicable(total_amount, items, at):
            return 0

        fixed = int(fixed_value if fixed_value is not None else self.value)
        percentage = Decimal(str(self.value)) / Decimal(100)

        if self.type == DiscountType.BASKET.value:
            if self.method == DiscountMethod.FIXED.value:
                amount = fixed
            else:
                amount = round_half_up(Decimal(total_amount) * percentage)
        else:
            eligible = self.eligible_product_ids
            amount = 0
            for item in items:
                if str(item.product_id) not in eligible:
                    continue
                line_total = item.price * item.quantity
                if self.method == DiscountMethod.FIXED.value:
                    # Fixed product discounts apply once per line
                    amount += min(fixed, line_total)
                else:
                    amount += round_half_up(Decimal(line_total) * percentage)

        if self.max_discount_value and amount > self.max_discount_value:
            amount = self.max_discount_value
        return min(amount, total_amount)

    def increment_usage(self):
        self.current_usage = (self.current_usage or 0) + 1


@storefront.repository(part_of=Discount)
class DiscountRepository:
    def get_by_code(self, code: str) -> Discount:
        discount = self._dao.query.filter(code=(code or "").upper()).all().first
        if discount is None:
            raise NotFound(f"discount code {code} not found", field="discount_code")
        return discount
