"""Shipping method selection for a checkout."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.catalogue.pricing import ExchangeRateTable
from storefront.checkout.checkout import Checkout
from storefront.domain import storefront
from storefront.shared.shipping_option import ShippingOption
from storefront.shipping import get_shipping_provider

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Checkout")
class SetShippingMethod:
    checkout_id = Identifier(required=True)
    shipping_method_id = String(required=True, max_length=100)


@storefront.command_handler(part_of=Checkout)
class CheckoutShippingHandler:
    @handle(SetShippingMethod)
    def set_shipping_method(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout._ensure_active()
        if not checkout.has_shipping_info():
            raise ValidationError(
                {"shipping_address": ["A shipping address is required before choosing shipping"]}
            )

        quote = get_shipping_provider().quote(
            command.shipping_method_id,
            checkout.shipping_address,
            checkout.total_amount,
            checkout.total_weight,
            checkout.currency,
        )
        if quote is None:
            raise ValidationError(
                {"shipping_method_id": [f"shipping method {command.shipping_method_id} is not available"]}
            )

        cost = ExchangeRateTable.load().convert(quote.cost, quote.currency, checkout.currency)
        checkout.set_shipping_option(
            ShippingOption(
                shipping_method_id=quote.shipping_method_id,
                shipping_rate_id=quote.shipping_rate_id,
                name=quote.name,
                description=quote.description,
                cost=cost,
                estimated_delivery_days=quote.estimated_delivery_days,
                free_shipping=quote.free_shipping,
            )
        )
        repo.add(checkout)
        logger.info(
            "Shipping method selected",
            checkout_id=str(checkout.id),
            shipping_method_id=quote.shipping_method_id,
            cost=cost,
        )
        return cost


def set_shipping_method(checkout_id, shipping_method_id) -> int:
    """Select a shipping method and return its cost in the checkout currency."""
    return current_domain.process(
        SetShippingMethod(checkout_id=checkout_id, shipping_method_id=shipping_method_id),
        asynchronous=False,
    )
