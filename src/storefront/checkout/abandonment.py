"""Idle and stale checkout sweeps.

Meant to be triggered periodically by an external scheduler. Active
checkouts that carry contact or shipping details and have been idle past
``CHECKOUT_ABANDON_MINUTES`` are marked abandoned; active checkouts past
their ``expires_at`` are marked expired. Each checkout is processed on its
own, so one failure does not stop the sweep.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.checkout.checkout import Checkout
from storefront.checkout.lifecycle import AbandonCheckout, ExpireCheckout
from storefront.utils.config import checkout_abandon_minutes

logger = structlog.get_logger(__name__)


def detect_abandoned_checkouts(as_of=None) -> int:
    """Mark idle checkouts abandoned and return how many were marked."""
    as_of = as_of or datetime.now(UTC)
    idle_minutes = checkout_abandon_minutes()

    candidates = [
        checkout
        for checkout in current_domain.repository_for(Checkout).list_active()
        if not checkout.is_expired(as_of) and checkout.should_be_abandoned(idle_minutes, now=as_of)
    ]
    logger.info("Checking for abandoned checkouts", candidates=len(candidates), idle_minutes=idle_minutes)

    abandoned = 0
    for checkout in candidates:
        try:
            current_domain.process(AbandonCheckout(checkout_id=str(checkout.id)), asynchronous=False)
            abandoned += 1
        except ValidationError as exc:
            logger.warning("Failed to abandon checkout", checkout_id=str(checkout.id), error=str(exc))
    return abandoned


def expire_stale_checkouts(as_of=None) -> int:
    """Mark checkouts past ``expires_at`` expired and return how many were marked."""
    as_of = as_of or datetime.now(UTC)

    stale = [c for c in current_domain.repository_for(Checkout).list_active() if c.is_expired(as_of)]
    logger.info("Checking for expired checkouts", candidates=len(stale))

    expired = 0
    for checkout in stale:
        try:
            current_domain.process(ExpireCheckout(checkout_id=str(checkout.id)), asynchronous=False)
            expired += 1
        except ValidationError as exc:
            logger.warning("Failed to expire checkout", checkout_id=str(checkout.id), error=str(exc))
    return expired
