"""Storefront domain — checkout, orders, payments and stock.

Checkouts collect currency-resolved line items and convert into immutable
orders. Orders carry two independent status fields (fulfilment and payment)
driven by payment-gateway outcomes, which reserve and release variant stock
and append to the payment transaction ledger.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
