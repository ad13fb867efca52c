"""Error taxonomy for the Storefront domain.

Every error names its ``kind`` and carries Protean-style ``messages``
(``{"field": ["reason"]}``) so callers can report a structured failure
without exposing internals. Most kinds extend Protean's own exceptions,
which lets framework-level handlers treat them uniformly.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class _Kind:
    kind = "error"
    field = "error"

    @property
    def reason(self) -> str:
        messages = self.messages
        if isinstance(messages, dict):
            for values in messages.values():
                if values:
                    return values[0] if isinstance(values, list) else str(values)
        return str(messages)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "reason": self.reason}


def _messages(field, reason):
    return {field: [reason]}


class NotFound(_Kind, ObjectNotFoundError):
    kind = "not_found"
    field = "entity"

    def __init__(self, reason: str, field: str | None = None):
        # ObjectNotFoundError keeps no messages of its own
        self.messages = _messages(field or self.field, reason)
        super().__init__(reason)


class InvalidStateTransition(_Kind, ValidationError):
    kind = "invalid_state_transition"
    field = "status"

    def __init__(self, reason: str, field: str | None = None):
        super().__init__(_messages(field or self.field, reason))


class CheckoutNotActive(InvalidStateTransition):
    kind = "checkout_not_active"


class InsufficientStock(_Kind, ValidationError):
    kind = "insufficient_stock"
    field = "stock"

    def __init__(self, reason: str, variant_id: str | None = None):
        self.variant_id = variant_id
        super().__init__(_messages(self.field, reason))


class CurrencyNotFound(NotFound):
    kind = "currency_not_found"
    field = "currency"


class CurrencyDisabled(_Kind, ValidationError):
    kind = "currency_disabled"
    field = "currency"

    def __init__(self, reason: str):
        super().__init__(_messages(self.field, reason))


class AmountOutOfRange(_Kind, ValidationError):
    kind = "amount_out_of_range"
    field = "amount"

    def __init__(self, reason: str):
        super().__init__(_messages(self.field, reason))


class GatewayError(_Kind, Exception):
    """The payment provider rejected an operation.

    The failed attempt has already been committed to the ledger; its id is
    available as ``transaction_id``.
    """

    kind = "gateway_error"
    field = "gateway"

    def __init__(self, reason: str, transaction_id: str | None = None):
        self.messages = _messages(self.field, reason)
        self.transaction_id = transaction_id
        super().__init__(reason)
