"""Checkout currency change — the one place every line is re-priced."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.catalogue.pricing import ExchangeRateTable, resolve_price
from storefront.catalogue.variant import ProductVariant
from storefront.checkout.checkout import Checkout
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Checkout")
class ChangeCurrency:
    checkout_id = Identifier(required=True)
    currency = String(required=True, max_length=3)


@storefront.command_handler(part_of=Checkout)
class CheckoutCurrencyHandler:
    @handle(ChangeCurrency)
    def change_currency(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout._ensure_active()

        table = ExchangeRateTable.load()
        target = table.require_enabled(command.currency)
        if target.code == checkout.currency:
            return checkout.final_amount

        variants = current_domain.repository_for(ProductVariant)
        item_prices = {
            str(item.variant_id): resolve_price(variants.get_by_id(item.variant_id), target.code, table)
            for item in checkout.items
        }
        shipping_cost = table.convert(checkout.shipping_cost, checkout.currency, target.code)
        discount_amount = table.convert(checkout.discount_amount, checkout.currency, target.code)

        previous = checkout.currency
        checkout.change_currency(target.code, item_prices, shipping_cost, discount_amount)
        repo.add(checkout)
        logger.info(
            "Checkout currency changed",
            checkout_id=str(checkout.id),
            previous_currency=previous,
            currency=target.code,
            items=len(item_prices),
        )
        return checkout.final_amount


def change_currency(checkout_id, currency) -> int:
    """Re-price a checkout in ``currency`` and return its new final amount."""
    return current_domain.process(ChangeCurrency(checkout_id=checkout_id, currency=currency), asynchronous=False)
