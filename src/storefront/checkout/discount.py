"""Discount code application for a checkout.

The amount a code is worth is computed once, when it is applied, and kept
on the checkout as an ``AppliedDiscount``. Fixed discount values are
stored in the default currency and converted into the checkout currency
before they are applied.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.catalogue.currency import Currency
from storefront.catalogue.pricing import ExchangeRateTable
from storefront.checkout.checkout import Checkout
from storefront.discounts.discount import Discount, DiscountMethod
from storefront.domain import storefront
from storefront.exceptions import NotFound

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Checkout")
class ApplyDiscount:
    checkout_id = Identifier(required=True)
    code = String(max_length=100)  # Empty removes the applied discount


def _invalid(code):
    return ValidationError({"discount_code": [f"discount code {code} is not valid for this checkout"]})


@storefront.command_handler(part_of=Checkout)
class CheckoutDiscountHandler:
    @handle(ApplyDiscount)
    def apply_discount(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)

        if not command.code:
            checkout.remove_discount()
            repo.add(checkout)
            return 0

        try:
            discount = current_domain.repository_for(Discount).get_by_code(command.code)
        except NotFound as exc:
            raise _invalid(command.code) from exc

        if not discount.is_applicable(checkout.total_amount, checkout.items):
            raise _invalid(command.code)

        fixed_value = None
        if discount.method == DiscountMethod.FIXED.value:
            default = current_domain.repository_for(Currency).get_default()
            fixed_value = ExchangeRateTable.load().convert(int(discount.value), default.code, checkout.currency)

        amount = discount.calculate(checkout.total_amount, checkout.items, fixed_value=fixed_value)
        if amount <= 0:
            raise _invalid(command.code)

        checkout.apply_discount(discount.id, discount.code, amount)
        repo.add(checkout)
        logger.info("Discount applied", checkout_id=str(checkout.id), code=discount.code, amount=amount)
        return amount


def apply_discount(checkout_id, code) -> int:
    """Apply ``code`` to a checkout, or remove the applied discount when ``code`` is None.

    Returns the discount amount in the checkout currency.
    """
    return current_domain.process(ApplyDiscount(checkout_id=checkout_id, code=code), asynchronous=False)
