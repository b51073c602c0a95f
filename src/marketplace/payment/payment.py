"""Payment log — one append-only row per gateway callback that changed money state.

Rows are inserted and never updated; the order's ``payment_status`` is the
single mutable summary. The rows double as the deduplication record for
gateway events that do not move the order's status.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


class PaymentRecordStatus(Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


@marketplace.aggregate
class Payment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, required=True)
    gateway_transaction_id = String(max_length=255)
    status = String(max_length=20, required=True, choices=PaymentRecordStatus)
    failure_reason = String(max_length=500)
    gateway_response = Text()  # JSON snapshot of the gateway object
    created_at = DateTime()

    @classmethod
    def record(cls, order_id, customer_id, amount, currency, status, gateway_transaction_id=None, **kwargs):
        return cls(
            order_id=str(order_id),
            customer_id=str(customer_id),
            amount=amount,
            currency=currency,
            status=status.value,
            gateway_transaction_id=gateway_transaction_id,
            created_at=datetime.now(UTC),
            **kwargs,
        )


@marketplace.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id) -> list[Payment]:
        return self._dao.query.filter(order_id=str(order_id)).order_by("created_at").all().items

    def find_by_transaction(self, gateway_transaction_id, status: PaymentRecordStatus | None = None) -> Payment | None:
        if not gateway_transaction_id:
            return None
        criteria = {"gateway_transaction_id": gateway_transaction_id}
        if status is not None:
            criteria["status"] = status.value
        return self._dao.query.filter(**criteria).all().first
