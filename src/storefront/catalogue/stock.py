"""Stock ledger: reserves and releases variant stock.

Stock is reserved when a payment is authorized and released when an
authorization is cancelled, fails, or is refunded. Reservation of an
order's items is all-or-nothing.
"""

import structlog
from protean.utils.globals import current_domain

from storefront.catalogue.variant import ProductVariant
from storefront.exceptions import InsufficientStock

logger = structlog.get_logger(__name__)


def _quantities_by_variant(items) -> dict[str, int]:
    totals = {}
    for item in items:
        key = str(item.variant_id)
        totals[key] = totals.get(key, 0) + item.quantity
    return totals


class StockLedger:
    def __init__(self, repository=None):
        self.repository = repository or current_domain.repository_for(ProductVariant)

    def reserve(self, variant_id, quantity: int) -> int:
        if quantity <= 0:
            raise InsufficientStock("reservation quantity must be positive", variant_id=str(variant_id))
        return self.repository.apply_stock_delta(variant_id, -quantity)

    def release(self, variant_id, quantity: int) -> int:
        return self.repository.apply_stock_delta(variant_id, quantity)

    def reserve_items(self, items) -> None:
        """Reserve every line or none of them."""
        reserved = []
        try:
            for variant_id, quantity in _quantities_by_variant(items).items():
                self.reserve(variant_id, quantity)
                reserved.append((variant_id, quantity))
        except Exception:
            for variant_id, quantity in reversed(reserved):
                self.release(variant_id, quantity)
            raise

        logger.info("Stock reserved", lines=len(reserved))

    def release_items(self, items) -> list[str]:
        """Release every line, returning a warning for each line that could not be released."""
        warnings = []
        for variant_id, quantity in _quantities_by_variant(items).items():
            try:
                self.release(variant_id, quantity)
            except Exception as exc:
                logger.warning(
                    "Failed to release stock",
                    variant_id=variant_id,
                    quantity=quantity,
                    error=str(exc),
                )
                warnings.append(f"release_stock[{variant_id}]: {exc}")
        return warnings
