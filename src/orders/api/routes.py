"""FastAPI routes for the Orders domain — one router per audience."""

import json

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from orders.api.auth import Actor, require_role
from orders.api.schemas import (
    AdvanceStatusRequest,
    ApproveOrderRequest,
    CancelOrderRequest,
    ConfirmPaymentRequest,
    DeliveredRequest,
    OutForDeliveryRequest,
    PaymentConfirmationResponse,
    PlaceOrderRequest,
    ReadyForDeliveryRequest,
    RejectOrderRequest,
    RetryFollowUpsRequest,
    RetryFollowUpsResponse,
    StartProductionRequest,
)
from orders.follow_up.retry import RetryFollowUps
from orders.order.cancellation import CancelOrder, CancelOrderAsAdmin
from orders.order.locking import process_for_order
from orders.order.order import Order, OrderStatus, Role
from orders.order.payment_confirmation import ConfirmPayment
from orders.order.placement import PlaceOrder
from orders.order.production import (
    AdvanceOrderStatus,
    MarkDelivered,
    MarkOutForDelivery,
    MarkReadyForDelivery,
    StartProduction,
)
from orders.order.review import ApproveOrder, RejectOrder
from orders.views.order_views import customer_order, customer_orders, staff_order, staff_orders

customer_only = require_role(Role.CUSTOMER)
admin_only = require_role(Role.ADMIN)
operator_only = require_role(Role.OPERATOR)
system_only = require_role(Role.SYSTEM)

# ---------------------------------------------------------------------------
# Customer Router
# ---------------------------------------------------------------------------
customer_router = APIRouter(prefix="/orders", tags=["orders"])


@customer_router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest, actor: Actor = Depends(customer_only)) -> dict:
    command = PlaceOrder(
        customer_id=actor.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        payment_method=body.payment_method,
        shipping_address=json.dumps(body.shipping_address.model_dump()) if body.shipping_address else None,
        shipping_address_id=body.shipping_address_id,
        delivery_instructions=body.delivery_instructions,
    )
    order_number = current_domain.process(command, asynchronous=False)
    return customer_order(order_number, actor.user_id)


@customer_router.get("/my")
async def list_my_orders(actor: Actor = Depends(customer_only)) -> list[dict]:
    return customer_orders(actor.user_id)


@customer_router.get("/my/{order_number}")
async def get_my_order(order_number: str, actor: Actor = Depends(customer_only)) -> dict:
    return customer_order(order_number, actor.user_id)


@customer_router.post("/{order_number}/cancel")
async def cancel_my_order(order_number: str, body: CancelOrderRequest, actor: Actor = Depends(customer_only)) -> dict:
    process_for_order(
        CancelOrder(
            order_number=order_number,
            customer_id=actor.user_id,
            reason=body.reason,
            expected_revision=body.expected_revision,
        )
    )
    return customer_order(order_number, actor.user_id)


@customer_router.post("/{order_number}/delivered")
async def confirm_delivery(order_number: str, body: DeliveredRequest, actor: Actor = Depends(system_only)) -> dict:
    """Delivery confirmation from the carrier integration."""
    process_for_order(MarkDelivered(order_number=order_number, expected_revision=body.expected_revision))
    return {"order_number": order_number, "status": OrderStatus.DELIVERED.value}


# ---------------------------------------------------------------------------
# Payment Callback Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/confirm", response_model=PaymentConfirmationResponse)
async def confirm_payment(body: ConfirmPaymentRequest) -> PaymentConfirmationResponse:
    verified = process_for_order(
        ConfirmPayment(
            order_number=body.order_number,
            provider=body.provider,
            provider_payment_id=body.provider_payment_id,
            raw_payload=body.raw_payload,
        )
    )
    order = current_domain.repository_for(Order).get_by_number(body.order_number)
    return PaymentConfirmationResponse(
        order_number=order.order_number,
        payment_verified=verified,
        status=order.status,
        payment_status=order.payment_status,
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders")
async def admin_list_orders(status: str | None = None, actor: Actor = Depends(admin_only)) -> list[dict]:
    return staff_orders(actor.user_id, actor.role, status=status)


@admin_router.get("/orders/under-review")
async def admin_orders_under_review(actor: Actor = Depends(admin_only)) -> list[dict]:
    return staff_orders(actor.user_id, actor.role, status=OrderStatus.UNDER_REVIEW.value)


@admin_router.get("/orders/{order_number}")
async def admin_get_order(order_number: str, actor: Actor = Depends(admin_only)) -> dict:
    return staff_order(order_number, actor.user_id, actor.role)


@admin_router.post("/orders/{order_number}/approve")
async def approve_order(order_number: str, body: ApproveOrderRequest, actor: Actor = Depends(admin_only)) -> dict:
    process_for_order(
        ApproveOrder(
            order_number=order_number,
            admin_id=actor.user_id,
            operator_id=body.operator_id,
            deadline=body.deadline,
            admin_notes=body.admin_notes,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@admin_router.post("/orders/{order_number}/reject")
async def reject_order(order_number: str, body: RejectOrderRequest, actor: Actor = Depends(admin_only)) -> dict:
    process_for_order(
        RejectOrder(
            order_number=order_number,
            admin_id=actor.user_id,
            reason=body.reason,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@admin_router.post("/orders/{order_number}/cancel")
async def admin_cancel_order(order_number: str, body: CancelOrderRequest, actor: Actor = Depends(admin_only)) -> dict:
    process_for_order(
        CancelOrderAsAdmin(
            order_number=order_number,
            admin_id=actor.user_id,
            reason=body.reason,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@admin_router.post("/follow-ups/retry", response_model=RetryFollowUpsResponse)
async def retry_follow_ups(body: RetryFollowUpsRequest, actor: Actor = Depends(admin_only)) -> RetryFollowUpsResponse:
    outcome = current_domain.process(RetryFollowUps(limit=body.limit), asynchronous=False)
    return RetryFollowUpsResponse(**outcome)


# ---------------------------------------------------------------------------
# Operator Router
# ---------------------------------------------------------------------------
operator_router = APIRouter(prefix="/operator", tags=["operator"])


@operator_router.get("/orders")
async def operator_list_orders(status: str | None = None, actor: Actor = Depends(operator_only)) -> list[dict]:
    return staff_orders(actor.user_id, actor.role, status=status)


@operator_router.get("/orders/in-production")
async def operator_orders_in_production(actor: Actor = Depends(operator_only)) -> list[dict]:
    return staff_orders(actor.user_id, actor.role, status=OrderStatus.IN_PRODUCTION.value)


@operator_router.get("/orders/ready-for-delivery")
async def operator_orders_ready(actor: Actor = Depends(operator_only)) -> list[dict]:
    return staff_orders(actor.user_id, actor.role, status=OrderStatus.READY_FOR_DELIVERY.value)


@operator_router.get("/orders/{order_number}")
async def operator_get_order(order_number: str, actor: Actor = Depends(operator_only)) -> dict:
    return staff_order(order_number, actor.user_id, actor.role)


@operator_router.put("/orders/{order_number}/status")
async def advance_status(order_number: str, body: AdvanceStatusRequest, actor: Actor = Depends(operator_only)) -> dict:
    process_for_order(
        AdvanceOrderStatus(
            order_number=order_number,
            operator_id=actor.user_id,
            new_status=body.new_status,
            notes=body.notes,
            tracking_number=body.tracking_number,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@operator_router.post("/orders/{order_number}/start-production")
async def start_production(
    order_number: str, body: StartProductionRequest, actor: Actor = Depends(operator_only)
) -> dict:
    process_for_order(
        StartProduction(
            order_number=order_number,
            operator_id=actor.user_id,
            notes=body.notes,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@operator_router.post("/orders/{order_number}/ready-for-delivery")
async def mark_ready_for_delivery(
    order_number: str, body: ReadyForDeliveryRequest, actor: Actor = Depends(operator_only)
) -> dict:
    process_for_order(
        MarkReadyForDelivery(
            order_number=order_number,
            operator_id=actor.user_id,
            preparation_notes=body.preparation_notes,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@operator_router.post("/orders/{order_number}/out-for-delivery")
async def mark_out_for_delivery(
    order_number: str, body: OutForDeliveryRequest, actor: Actor = Depends(operator_only)
) -> dict:
    process_for_order(
        MarkOutForDelivery(
            order_number=order_number,
            operator_id=actor.user_id,
            tracking_number=body.tracking_number,
            expected_revision=body.expected_revision,
        )
    )
    return staff_order(order_number, actor.user_id, actor.role)


@operator_router.post("/orders/{order_number}/delivered")
async def operator_mark_delivered(
    order_number: str, body: DeliveredRequest, actor: Actor = Depends(operator_only)
) -> dict:
    process_for_order(
        MarkDelivered(
            order_number=order_number,
            performed_by=actor.user_id,
            expected_revision=body.expected_revision,
        )
    )
    return {"order_number": order_number, "status": OrderStatus.DELIVERED.value}
