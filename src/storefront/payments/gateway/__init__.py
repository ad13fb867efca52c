"""Payment gateway registry.

The active gateway is built on first use from the adapter registered under
the ``PAYMENT_PROVIDER`` setting. Tests and deployments swap it with
``set_gateway()``.
"""

from collections.abc import Callable

from storefront.payments.gateway.fake_adapter import FakeGateway
from storefront.payments.gateway.port import PaymentGateway
from storefront.utils.config import payment_provider

_adapters: dict[str, Callable[[], PaymentGateway]] = {FakeGateway.name: FakeGateway}
_active: PaymentGateway | None = None


def register_adapter(name: str, factory: Callable[[], PaymentGateway]) -> None:
    _adapters[name] = factory


def get_gateway() -> PaymentGateway:
    global _active
    if _active is None:
        name = payment_provider()
        if name not in _adapters:
            raise LookupError(f"no payment gateway adapter registered for provider {name!r}")
        _active = _adapters[name]()
    return _active


def set_gateway(gateway: PaymentGateway) -> None:
    global _active
    _active = gateway


def reset_gateway() -> None:
    global _active
    _active = None
