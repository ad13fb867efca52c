"""Checkout to order conversion.

The order is placed and the checkout completed in the same unit of work.
Bumping the discount's usage counter is best effort: it runs after commit
and a failure there comes back as a warning on an otherwise placed order.
"""

from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from storefront.checkout.checkout import Checkout
from storefront.discounts.discount import Discount
from storefront.domain import storefront
from storefront.effects import PostCommitEffect, run_post_commit
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@dataclass
class ConversionResult:
    order_id: str
    order_number: str
    checkout_id: str
    final_amount: int
    effects: list[PostCommitEffect] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _validate_ready(checkout: Checkout) -> None:
    if not checkout.items:
        raise ValidationError({"items": ["checkout has no items"]})

    shipping = checkout.shipping_address
    if shipping is None or not shipping.street:
        raise ValidationError({"shipping_address": ["shipping address street is required"]})
    if not shipping.country:
        raise ValidationError({"shipping_address": ["shipping address country is required"]})

    billing = checkout.billing_address
    if billing is None or not billing.street:
        raise ValidationError({"billing_address": ["billing address street is required"]})
    if not billing.country:
        raise ValidationError({"billing_address": ["billing address country is required"]})

    details = checkout.customer_details
    if details is None or not details.email:
        raise ValidationError({"customer_details": ["customer email is required"]})
    if not details.full_name:
        raise ValidationError({"customer_details": ["customer full name is required"]})

    if not checkout.shipping_method_id:
        raise ValidationError({"shipping_method_id": ["a shipping method must be selected"]})


def increment_discount_usage(discount_id) -> None:
    repo = current_domain.repository_for(Discount)
    discount = repo.get(discount_id)
    discount.increment_usage()
    repo.add(discount)
    logger.info("Discount usage incremented", discount_id=str(discount_id), usage=discount.current_usage)


@storefront.command(part_of="Checkout")
class ConvertToOrder:
    checkout_id = Identifier(required=True)


@storefront.command_handler(part_of=Checkout)
class ConvertCheckoutHandler:
    @handle(ConvertToOrder)
    def convert_to_order(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout._ensure_active()
        _validate_ready(checkout)

        items_data = [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id),
                "sku": item.sku,
                "product_name": item.product_name,
                "variant_name": item.variant_name,
                "quantity": item.quantity,
                "price": item.price,
                "weight": item.weight,
            }
            for item in checkout.items
        ]
        # Final amount never goes below zero
        discount_amount = min(checkout.discount_amount, checkout.total_amount + checkout.shipping_cost)

        order = Order.create(
            items_data=items_data,
            currency=checkout.currency,
            shipping_cost=checkout.shipping_cost,
            discount_amount=discount_amount,
            shipping_address=checkout.shipping_address,
            billing_address=checkout.billing_address,
            customer_details=checkout.customer_details,
            user_id=checkout.user_id,
            checkout_id=str(checkout.id),
            shipping_method_id=checkout.shipping_method_id,
            shipping_option=checkout.shipping_option,
            discount_code=checkout.applied_discount.code if checkout.applied_discount else None,
        )
        current_domain.repository_for(Order).add(order)

        checkout.mark_completed(order.id)
        repo.add(checkout)

        effects = []
        if checkout.applied_discount is not None:
            discount_id = checkout.applied_discount.discount_id
            effects.append(PostCommitEffect("discount_usage", lambda: increment_discount_usage(discount_id)))

        logger.info(
            "Checkout converted to order",
            checkout_id=str(checkout.id),
            order_id=str(order.id),
            order_number=order.order_number,
            final_amount=order.final_amount,
        )
        return ConversionResult(
            order_id=str(order.id),
            order_number=order.order_number,
            checkout_id=str(checkout.id),
            final_amount=order.final_amount,
            effects=effects,
        )


def convert_to_order(checkout_id) -> ConversionResult:
    """Place an order from a checkout.

    A failed discount usage update is reported in ``warnings``; the order
    is placed regardless.
    """
    result = current_domain.process(ConvertToOrder(checkout_id=checkout_id), asynchronous=False)
    result.warnings.extend(run_post_commit(result.effects, order_id=result.order_id))
    return result
