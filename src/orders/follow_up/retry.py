"""Follow-up retry: re-attempt refunds that failed during cancellation.

Meant to be triggered periodically (cron, or the admin maintenance
endpoint). ``RetryFollowUps`` finds pending follow-ups and dispatches one
``RetryFollowUp`` per item under that order's lock, so each retry commits
its follow-up and audit entry together.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.errors import describe
from orders.follow_up.follow_up import FollowUp, FollowUpStatus
from orders.history.order_event import EventType, record
from orders.order.locking import process_for_order
from orders.order.order import Order
from orders.payment import get_gateway
from orders.shared.clock import utcnow
from orders.shared.money import to_decimal

logger = structlog.get_logger(__name__)


@orders.command(part_of="FollowUp")
class RetryFollowUps:
    """Retry pending follow-ups, oldest first."""

    limit = Integer()  # Optional: cap on follow-ups per run


@orders.command(part_of="FollowUp")
class RetryFollowUp:
    follow_up_id = Identifier(required=True)
    order_number = String(required=True, max_length=20)


@orders.command_handler(part_of=FollowUp)
class FollowUpHandler:
    @handle(RetryFollowUp)
    def retry_follow_up(self, command):
        repo = current_domain.repository_for(FollowUp)
        follow_up = repo.get(command.follow_up_id)
        if follow_up.status != FollowUpStatus.PENDING.value:
            raise InvalidOperationError(f"Follow-up {follow_up.id} is {follow_up.status}")

        order_repo = current_domain.repository_for(Order)
        order = order_repo.get_by_number(command.order_number)
        now = utcnow()

        try:
            reference = get_gateway().initiate_refund(
                order.order_number,
                to_decimal(follow_up.amount),
                follow_up.reason,
            )
        except Exception as exc:
            follow_up.record_failure(str(exc), now=now)
            record(
                order,
                EventType.REFUND_INITIATION_FAILED,
                f"Failed to initiate refund: {exc}",
                performed_by=follow_up.performed_by_user_id,
                created_at=now,
            )
            logger.warning(
                "Refund retry failed",
                order_number=order.order_number,
                attempts=follow_up.attempts,
                status=follow_up.status,
                error=str(exc),
            )
        else:
            follow_up.record_success(reference, now=now)
            record(
                order,
                EventType.REFUND_INITIATED,
                "Refund process initiated due to order cancellation",
                performed_by=follow_up.performed_by_user_id,
                created_at=now,
            )
            logger.info("Refund retry succeeded", order_number=order.order_number, refund_reference=reference)

        repo.add(follow_up)
        order_repo.add(order)
        return follow_up.status

    @handle(RetryFollowUps)
    def retry_follow_ups(self, command):
        pending = current_domain.repository_for(FollowUp).pending()
        if command.limit:
            pending = pending[: command.limit]
        if not pending:
            logger.info("No pending follow-ups")
            return {"completed": 0, "failed": 0, "abandoned": 0}

        outcome = {"completed": 0, "failed": 0, "abandoned": 0}
        for follow_up in pending:
            try:
                status = process_for_order(
                    RetryFollowUp(follow_up_id=follow_up.id, order_number=follow_up.order_number)
                )
            except (ValidationError, InvalidOperationError, ExpectedVersionError) as exc:
                logger.warning(
                    "Failed to retry follow-up",
                    follow_up_id=str(follow_up.id),
                    order_number=follow_up.order_number,
                    error=describe(exc),
                )
                continue

            if status == FollowUpStatus.COMPLETED.value:
                outcome["completed"] += 1
            elif status == FollowUpStatus.ABANDONED.value:
                outcome["abandoned"] += 1
            else:
                outcome["failed"] += 1

        logger.info("Follow-up retry complete", **outcome)
        return outcome
