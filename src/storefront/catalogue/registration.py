"""Variant registration — keeps exactly one default variant per product."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.variant import ProductVariant
from storefront.domain import storefront


@storefront.command(part_of="ProductVariant")
class RegisterVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    price = Integer(required=True, min_value=0)
    currency_code = String(required=True, max_length=3)
    prices = Text()  # JSON object: {"EUR": 2500, ...}
    stock = Integer(default=0, min_value=0)
    weight = Float(default=0.0)
    name = String(max_length=255)
    product_name = String(max_length=255)
    is_default = Boolean(default=False)


@storefront.command_handler(part_of=ProductVariant)
class RegisterVariantHandler:
    @handle(RegisterVariant)
    def register_variant(self, command):
        repo = current_domain.repository_for(ProductVariant)
        siblings = repo.list_by_product(command.product_id)

        variant = ProductVariant.create(
            product_id=command.product_id,
            sku=command.sku,
            price=command.price,
            currency_code=command.currency_code,
            stock=command.stock or 0,
            weight=command.weight or 0.0,
            name=command.name,
            product_name=command.product_name,
            # The first variant of a product becomes its default
            is_default=bool(command.is_default) or not siblings,
        )
        for code, price in json.loads(command.prices or "{}").items():
            variant.set_price(code, price)

        if variant.is_default:
            for sibling in siblings:
                if sibling.is_default:
                    sibling.is_default = False
                    repo.add(sibling)

        repo.add(variant)
        return str(variant.id)
