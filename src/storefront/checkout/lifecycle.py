"""Checkout lifecycle — creation, contact details, abandonment and expiry."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.currency import Currency
from storefront.catalogue.pricing import ExchangeRateTable
from storefront.checkout.checkout import Checkout
from storefront.domain import storefront
from storefront.shared.address import Address, CustomerDetails
from storefront.utils.config import checkout_ttl_hours

logger = structlog.get_logger(__name__)


def _load(raw) -> dict:
    return json.loads(raw) if isinstance(raw, str) else dict(raw or {})


@storefront.command(part_of="Checkout")
class CreateCheckout:
    """Start a checkout for a guest session or a registered user."""

    session_id = String(max_length=255)
    user_id = Identifier()
    currency = String(max_length=3)  # Defaults to the store currency


@storefront.command(part_of="Checkout")
class SetShippingAddress:
    checkout_id = Identifier(required=True)
    address = Text(required=True)  # JSON: address dict


@storefront.command(part_of="Checkout")
class SetBillingAddress:
    checkout_id = Identifier(required=True)
    address = Text(required=True)  # JSON: address dict


@storefront.command(part_of="Checkout")
class SetCustomerDetails:
    checkout_id = Identifier(required=True)
    email = String(max_length=254)
    phone = String(max_length=30)
    full_name = String(max_length=200)


@storefront.command(part_of="Checkout")
class AbandonCheckout:
    checkout_id = Identifier(required=True)


@storefront.command(part_of="Checkout")
class ExpireCheckout:
    checkout_id = Identifier(required=True)


@storefront.command(part_of="Checkout")
class ExtendCheckoutExpiry:
    checkout_id = Identifier(required=True)
    hours = Integer(min_value=1)  # Defaults to the configured checkout TTL


@storefront.command_handler(part_of=Checkout)
class CheckoutLifecycleHandler:
    @handle(CreateCheckout)
    def create_checkout(self, command):
        if command.currency:
            currency = ExchangeRateTable.load().require_enabled(command.currency)
        else:
            currency = current_domain.repository_for(Currency).get_default()

        checkout = Checkout.create(
            currency=currency.code,
            session_id=command.session_id,
            user_id=command.user_id,
            ttl_hours=checkout_ttl_hours(),
        )
        current_domain.repository_for(Checkout).add(checkout)
        logger.info(
            "Checkout started",
            checkout_id=str(checkout.id),
            currency=checkout.currency,
            guest=command.user_id is None,
        )
        return str(checkout.id)

    @handle(SetShippingAddress)
    def set_shipping_address(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.set_shipping_address(Address(**_load(command.address)))
        repo.add(checkout)

    @handle(SetBillingAddress)
    def set_billing_address(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.set_billing_address(Address(**_load(command.address)))
        repo.add(checkout)

    @handle(SetCustomerDetails)
    def set_customer_details(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.set_customer_details(
            CustomerDetails(email=command.email, phone=command.phone, full_name=command.full_name)
        )
        repo.add(checkout)

    @handle(AbandonCheckout)
    def abandon_checkout(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.mark_abandoned()
        repo.add(checkout)
        logger.info("Checkout abandoned", checkout_id=str(checkout.id))

    @handle(ExpireCheckout)
    def expire_checkout(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.mark_expired()
        repo.add(checkout)
        logger.info("Checkout expired", checkout_id=str(checkout.id))

    @handle(ExtendCheckoutExpiry)
    def extend_checkout_expiry(self, command):
        repo = current_domain.repository_for(Checkout)
        checkout = repo.get_by_id(command.checkout_id)
        checkout.extend_expiry(command.hours or checkout_ttl_hours())
        repo.add(checkout)
        logger.info("Checkout expiry extended", checkout_id=str(checkout.id), expires_at=checkout.expires_at.isoformat())


def create_checkout(session_id=None, user_id=None, currency=None) -> str:
    return current_domain.process(
        CreateCheckout(session_id=session_id, user_id=user_id, currency=currency),
        asynchronous=False,
    )


def set_shipping_address(checkout_id, address: dict) -> None:
    current_domain.process(
        SetShippingAddress(checkout_id=checkout_id, address=json.dumps(address)),
        asynchronous=False,
    )


def set_billing_address(checkout_id, address: dict) -> None:
    current_domain.process(
        SetBillingAddress(checkout_id=checkout_id, address=json.dumps(address)),
        asynchronous=False,
    )


def set_customer_details(checkout_id, email=None, phone=None, full_name=None) -> None:
    current_domain.process(
        SetCustomerDetails(checkout_id=checkout_id, email=email, phone=phone, full_name=full_name),
        asynchronous=False,
    )


def abandon_checkout(checkout_id) -> None:
    current_domain.process(AbandonCheckout(checkout_id=checkout_id), asynchronous=False)


def expire_checkout(checkout_id) -> None:
    current_domain.process(ExpireCheckout(checkout_id=checkout_id), asynchronous=False)


def extend_checkout_expiry(checkout_id, hours=None) -> None:
    current_domain.process(ExtendCheckoutExpiry(checkout_id=checkout_id, hours=hours), asynchronous=False)
