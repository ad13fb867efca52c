"""Checkout line items — add, update and remove.

Adding an item resolves the variant's price in the checkout currency and
freezes it on the line.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue.pricing import ExchangeRateTable, resolve_price
from storefront.catalogue.variant import ProductVariant
from storefront.checkout.checkout import Checkout
from storefront.domain import storefront


@storefront.command(part_of="Checkout")
class AddCheckoutItem:
    """Add a variant, identified by id or SKU, to a checkout."""

    checkout_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(max_length=100)
    quantity = Integer(required=True)


@storefront.command(part_of="Checkout")
class UpdateCheckoutItem:
    checkout_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.command(part_of="Checkout")
class RemoveCheckoutItem:
    checkout_id = Identifier(required=True)
    variant_id = Identifier(required=True)


def _find_variant(variant_id, sku) -> ProductVariant:
    repo = current_domain.repository_for(ProductVariant)
    if variant_id:
        return repo.get_by_id(variant_id)
    if sku:
        return repo.get_by_sku(sku)
    raise ValidationError({"variant_id": ["A variant id or SKU is required"]})


@storefront.command_handler(part_of=Checkout)
class CheckoutItemsHandler:
    @handle(AddCheckoutItem)
    def add_item(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout._ensure_active()

        variant = _find_variant(command.variant_id, command.sku)
        price = resolve_price(variant, checkout.currency, ExchangeRateTable.load())

        checkout.add_item(
            product_id=variant.product_id,
            variant_id=variant.id,
            quantity=command.quantity,
            price=price,
            weight=variant.weight,
            sku=variant.sku,
            product_name=variant.product_name,
            variant_name=variant.name,
        )
        repo.add(checkout)
        return str(variant.id)

    @handle(UpdateCheckoutItem)
    def update_item(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.update_item(command.variant_id, command.quantity)
        repo.add(checkout)

    @handle(RemoveCheckoutItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.remove_item(command.variant_id)
        repo.add(checkout)


def add_item(checkout_id, quantity, variant_id=None, sku=None) -> str:
    """Add a variant to a checkout and return the variant id."""
    return current_domain.process(
        AddCheckoutItem(checkout_id=checkout_id, variant_id=variant_id, sku=sku, quantity=quantity),
        asynchronous=False,
    )


def update_item(checkout_id, variant_id, quantity) -> None:
    current_domain.process(
        UpdateCheckoutItem(checkout_id=checkout_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


def remove_item(checkout_id, variant_id) -> None:
    current_domain.process(
        RemoveCheckoutItem(checkout_id=checkout_id, variant_id=variant_id),
        asynchronous=False,
    )
