import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture
def currencies():
    """USD (default), EUR and a disabled GBP."""
    from protean import current_domain
    from storefront.catalogue.currency import Currency

    repo = current_domain.repository_for(Currency)
    table = {
        "USD": Currency.create(code="USD", name="US Dollar", symbol="$", exchange_rate=1.0, is_default=True),
        "EUR": Currency.create(code="EUR", name="Euro", symbol="€", exchange_rate=0.9),
        "GBP": Currency.create(
            code="GBP", name="Pound Sterling", symbol="£", exchange_rate=0.8, is_enabled=False
        ),
    }
    for currency in table.values():
        repo.add(currency)
    return table


@pytest.fixture
def gateway():
    from storefront.payments.gateway import set_gateway
    from storefront.payments.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture
def notifier():
    from storefront.notifications import set_notifier
    from storefront.notifications.fake_sender import FakeNotificationSender

    fake = FakeNotificationSender()
    set_notifier(fake)
    return fake


@pytest.fixture
def shipping():
    from storefront.shipping import set_shipping_provider
    from storefront.shipping.flat_rate import FlatRate, FlatRateShipping

    provider = FlatRateShipping()
    provider.add_rate(FlatRate(method_id="standard", name="Standard", cost=500, estimated_delivery_days=5))
    provider.add_rate(
        FlatRate(method_id="express", name="Express", cost=1500, countries={"US"}, estimated_delivery_days=1)
    )
    provider.add_rate(FlatRate(method_id="saver", name="Saver", cost=700, free_over=20000))
    set_shipping_provider(provider)
    return provider


@pytest.fixture
def make_variant():
    """Persist a variant and return it."""
    from protean import current_domain
    from storefront.catalogue.variant import ProductVariant

    def _make(sku="TSHIRT-M", price=2000, currency_code="USD", stock=10, product_id="prod-1", prices=None, **kw):
        variant = ProductVariant.create(
            product_id=product_id,
            sku=sku,
            price=price,
            currency_code=currency_code,
            stock=stock,
            name=kw.pop("name", sku),
            product_name=kw.pop("product_name", "T-Shirt"),
            **kw,
        )
        for code, amount in (prices or {}).items():
            variant.set_price(code, amount)
        current_domain.repository_for(ProductVariant).add(variant)
        return current_domain.repository_for(ProductVariant).get(variant.id)

    return _make


@pytest.fixture
def place_order():
    """Persist a pending order for ``[(variant, quantity), ...]`` and return it."""
    from protean import current_domain
    from storefront.order.order import Order
    from storefront.shared.address import Address, CustomerDetails

    def _place(lines, shipping_cost=0, discount_amount=0, email="ada@example.com", user_id=None):
        address = Address(street="1 Analytical Way", city="London", postal_code="N1 9GU", country="GB")
        order = Order.create(
            items_data=[
                {
                    "product_id": str(variant.product_id),
                    "variant_id": str(variant.id),
                    "sku": variant.sku,
                    "product_name": variant.product_name,
                    "variant_name": variant.name,
                    "quantity": quantity,
                    "price": variant.price,
                    "weight": variant.weight,
                }
                for variant, quantity in lines
            ],
            currency="USD",
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            shipping_address=address,
            billing_address=address,
            customer_details=CustomerDetails(email=email, full_name="Ada Lovelace"),
            user_id=user_id,
        )
        current_domain.repository_for(Order).add(order)
        return current_domain.repository_for(Order).get(order.id)

    return _place


@pytest.fixture
def authorized_order(place_order, make_variant, gateway, notifier):
    """An order for 3 units of a 10-unit variant, with its payment authorized."""
    from protean import current_domain
    from storefront.order.order import Order
    from storefront.payments.authorization import authorize_payment

    variant = make_variant(sku="MUG-RED", price=2500, stock=10)
    order = place_order([(variant, 3)], shipping_cost=2500)
    authorize_payment(order.id, payment_method="card")
    return current_domain.repository_for(Order).get(order.id), variant
