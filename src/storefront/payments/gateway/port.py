"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement, so
the ledger can switch between FakeGateway (dev/test) and a real provider
without changing any domain code. Gateways are called synchronously; a
timeout is the adapter's concern and surfaces as an unsuccessful result.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class GatewayResult:
    """Result of a gateway call."""

    success: bool
    transaction_id: str | None = None
    status: str | None = None
    message: str | None = None
    requires_action: bool = False
    action_url: str | None = None
    raw_response: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def authorize(
        self,
        amount: int,
        currency: str,
        payment_method: str,
        reference: str,
        idempotency_key: str | None = None,
    ) -> GatewayResult:
        """Reserve funds without transferring them."""
        ...

    @abstractmethod
    def capture(self, payment_id: str, amount: int, currency: str) -> GatewayResult:
        """Transfer previously authorized funds (fully or partially)."""
        ...

    @abstractmethod
    def cancel(self, payment_id: str) -> GatewayResult:
        """Void an authorization that has not been captured."""
        ...

    @abstractmethod
    def refund(self, payment_id: str, amount: int, currency: str, reason: str = "") -> GatewayResult:
        """Return captured funds to the customer."""
        ...
