"""PaymentTransaction aggregate — one row per gateway attempt.

Transactions are append-mostly: each authorize, capture, cancel or refund
attempt creates one, successful or failed. A pending transaction (for
example an authorization awaiting customer action) may be resolved once.
Nothing is ever deleted; captured and refunded totals are always summed
from these rows.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.exceptions import InvalidStateTransition, NotFound


class TransactionType(Enum):
    AUTHORIZE = "authorize"
    CAPTURE = "capture"
    CANCEL = "cancel"
    REFUND = "refund"


class TransactionStatus(Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


_ID_PREFIXES = {
    TransactionType.AUTHORIZE: "AUTH",
    TransactionType.CAPTURE: "CAPT",
    TransactionType.CANCEL: "CANCEL",
    TransactionType.REFUND: "REFUND",
}

# The per-type amount column filled in once a transaction succeeds
_AMOUNT_FIELDS = {
    TransactionType.AUTHORIZE: "authorized_amount",
    TransactionType.CAPTURE: "captured_amount",
    TransactionType.REFUND: "refunded_amount",
}


def format_transaction_id(transaction_type: TransactionType, sequence: int, year: int | None = None) -> str:
    year = year or datetime.now(UTC).year
    return f"TXN-{_ID_PREFIXES[transaction_type]}-{year}-{sequence:03d}"


@storefront.aggregate
class PaymentTransaction:
    transaction_id = String(required=True, max_length=50, unique=True)
    order_id = Identifier(required=True)
    external_id = String(max_length=255)
    idempotency_key = String(max_length=255)
    type = String(required=True, choices=TransactionType)
    status = String(required=True, choices=TransactionStatus)
    amount = Integer(default=0, min_value=0)
    currency = String(max_length=3)
    provider = String(max_length=50)
    raw_response = Text()
    metadata = Text()  # JSON object, string -> string
    authorized_amount = Integer(default=0)
    captured_amount = Integer(default=0)
    refunded_amount = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        transaction_id,
        order_id,
        transaction_type: TransactionType,
        status: TransactionStatus,
        amount,
        currency,
        provider=None,
        external_id=None,
        idempotency_key=None,
        raw_response=None,
        metadata=None,
    ):
        now = datetime.now(UTC)
        txn = cls(
            transaction_id=transaction_id,
            order_id=order_id,
            type=transaction_type.value,
            status=status.value,
            amount=amount,
            currency=currency,
            provider=provider,
            external_id=external_id,
            idempotency_key=idempotency_key,
            raw_response=json.dumps(raw_response) if isinstance(raw_response, dict) else raw_response,
            metadata=json.dumps({k: str(v) for k, v in (metadata or {}).items()}),
            created_at=now,
            updated_at=now,
        )
        txn._sync_type_amount()
        return txn

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata or "{}")

    def add_metadata(self, key, value):
        data = self.metadata_dict
        data[key] = str(value)
        self.metadata = json.dumps(data)

    @property
    def is_successful(self) -> bool:
        return self.status == TransactionStatus.SUCCESSFUL.value

    def resolve(self, status: TransactionStatus, external_id=None, metadata=None):
        """Settle a pending transaction as successful or failed."""
        if self.status != TransactionStatus.PENDING.value:
            raise InvalidStateTransition(
                f"transaction {self.transaction_id} is already {self.status}", field="transaction_status"
            )
        if status is TransactionStatus.PENDING:
            raise InvalidStateTransition("a pending transaction can only be resolved to successful or failed")

        self.status = status.value
        if external_id:
            self.external_id = external_id
        for key, value in (metadata or {}).items():
            self.add_metadata(key, value)
        self.updated_at = datetime.now(UTC)
        self._sync_type_amount()

    def _sync_type_amount(self):
        # Per-type amounts only count once the money actually moved
        amount_field = _AMOUNT_FIELDS.get(TransactionType(self.type))
        if amount_field is not None:
            setattr(self, amount_field, self.amount if self.is_successful else 0)


@storefront.repository(part_of=PaymentTransaction)
class PaymentTransactionRepository:
    def get_by_transaction_id(self, transaction_id: str) -> PaymentTransaction:
        txn = self._dao.query.filter(transaction_id=transaction_id).all().first
        if txn is None:
            raise NotFound(f"transaction {transaction_id} not found", field="transaction_id")
        return txn

    def get_by_idempotency_key(self, key: str) -> PaymentTransaction | None:
        if not key:
            return None
        return self._dao.query.filter(idempotency_key=key).all().first

    def list_by_order(self, order_id) -> list[PaymentTransaction]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").all().items

    def sum_amount_by_order_and_type(self, order_id, transaction_type: TransactionType) -> int:
        """Sum of successful transactions of one type for an order."""
        return sum(
            txn.amount
            for txn in self._dao.query.filter(
                order_id=str(order_id),
                type=transaction_type.value,
                status=TransactionStatus.SUCCESSFUL.value,
            )
            .all()
            .items
        )

    def count_by_type(self, transaction_type: TransactionType) -> int:
        return self._dao.query.filter(type=transaction_type.value).all().total
