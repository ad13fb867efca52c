"""Configurable fake payment gateway for development and testing.

Simulates a provider without external calls. It can be configured at
runtime to succeed, fail, or demand a customer action (a 3-D Secure style
redirect) on authorization.
"""

from uuid import uuid4

from storefront.payments.gateway.port import GatewayResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.requires_action: bool = False
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        requires_action: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.requires_action = requires_action

    def calls_for(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    def authorize(self, amount, currency, payment_method, reference, idempotency_key=None):
        self.calls.append(
            {
                "method": "authorize",
                "amount": amount,
                "currency": currency,
                "payment_method": payment_method,
                "reference": reference,
                "idempotency_key": idempotency_key,
            }
        )
        if not self.should_succeed:
            return self._declined()

        payment_id = f"fake_pay_{uuid4().hex[:12]}"
        if self.requires_action:
            action_url = f"https://pay.example.test/authenticate/{payment_id}"
            return GatewayResult(
                success=True,
                transaction_id=payment_id,
                status="requires_action",
                requires_action=True,
                action_url=action_url,
                raw_response={"id": payment_id, "status": "requires_action", "next_action": action_url},
            )
        return self._ok(payment_id, "authorized")

    def capture(self, payment_id, amount, currency):
        self.calls.append({"method": "capture", "payment_id": payment_id, "amount": amount, "currency": currency})
        return self._ok(payment_id, "captured") if self.should_succeed else self._declined()

    def cancel(self, payment_id):
        self.calls.append({"method": "cancel", "payment_id": payment_id})
        return self._ok(payment_id, "cancelled") if self.should_succeed else self._declined()

    def refund(self, payment_id, amount, currency, reason=""):
        self.calls.append(
            {"method": "refund", "payment_id": payment_id, "amount": amount, "currency": currency, "reason": reason}
        )
        if not self.should_succeed:
            return self._declined()
        return self._ok(f"fake_ref_{uuid4().hex[:12]}", "refunded")

    def _ok(self, transaction_id, status):
        return GatewayResult(
            success=True,
            transaction_id=transaction_id,
            status=status,
            raw_response={"id": transaction_id, "status": status},
        )

    def _declined(self):
        return GatewayResult(
            success=False,
            status="failed",
            message=self.failure_reason,
            raw_response={"status": "failed", "error": self.failure_reason},
        )
