"""FollowUp aggregate — side effects of a committed transition that still need doing.

When a refund cannot be initiated during cancellation, the cancellation
still commits and a ``FollowUp`` is written alongside it. A separate retry
command drains pending follow-ups.

State Machine:
    PENDING → COMPLETED
    PENDING → (attempt fails) → PENDING ... → ABANDONED after MAX_ATTEMPTS
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from orders.domain import orders
from orders.shared.clock import utcnow

MAX_ATTEMPTS = 5


class FollowUpKind(Enum):
    REFUND = "REFUND"


class FollowUpStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


@orders.aggregate
class FollowUp:
    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=20)
    kind = String(choices=FollowUpKind, required=True)
    status = String(choices=FollowUpStatus, default=FollowUpStatus.PENDING.value)
    amount = String(max_length=32)
    reason = Text()
    performed_by_user_id = Identifier()
    attempts = Integer(default=1)
    last_error = Text()
    reference = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def refund(cls, order_id, order_number, amount, reason, performed_by_user_id=None, error=None, now=None):
        """A refund whose first initiation attempt has already failed."""
        now = now or utcnow()
        return cls(
            order_id=order_id,
            order_number=order_number,
            kind=FollowUpKind.REFUND.value,
            amount=str(amount),
            reason=reason,
            performed_by_user_id=performed_by_user_id,
            attempts=1,
            last_error=error,
            created_at=now,
            updated_at=now,
        )

    def _assert_pending(self):
        if self.status != FollowUpStatus.PENDING.value:
            raise ValidationError({"status": [f"Follow-up is already {self.status}"]})

    def record_success(self, reference=None, now=None):
        self._assert_pending()
        self.attempts += 1
        self.status = FollowUpStatus.COMPLETED.value
        self.reference = reference
        self.last_error = None
        self.updated_at = now or utcnow()

    def record_failure(self, error, now=None):
        self._assert_pending()
        self.attempts += 1
        self.last_error = error
        if self.attempts >= MAX_ATTEMPTS:
            self.status = FollowUpStatus.ABANDONED.value
        self.updated_at = now or utcnow()


@orders.repository(part_of=FollowUp)
class FollowUpRepository:
    def pending(self) -> list[FollowUp]:
        found = self._dao.query.filter(status=FollowUpStatus.PENDING.value).all().items
        return sorted(found, key=lambda follow_up: follow_up.created_at)

    def for_order(self, order_id) -> list[FollowUp]:
        return self._dao.query.filter(order_id=str(order_id)).all().items
