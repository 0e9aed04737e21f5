"""Pydantic request/response schemas for the Orders API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Business validation (empty item lists, missing
payment methods, blank reasons) is left to the domain so it reports the
same way whichever boundary a request comes through.
"""

from datetime import date

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient_name: str | None = None
    phone: str | None = None
    address_line: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None


class OrderLineSchema(BaseModel):
    product_ref: str
    quantity: int = 1
    size: str | None = None
    custom_note: str | None = None


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderLineSchema] = []
    payment_method: str | None = None
    shipping_address: AddressSchema | None = None
    shipping_address_id: str | None = None
    delivery_instructions: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_ref": "tee-classic", "quantity": 2, "size": "L"}],
                    "payment_method": "COD",
                    "shipping_address": {
                        "recipient_name": "Asha Rao",
                        "address_line": "12 MG Road",
                        "city": "Bengaluru",
                        "zip": "560001",
                        "country": "India",
                    },
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    expected_revision: int | None = None


class ConfirmPaymentRequest(BaseModel):
    order_number: str
    provider: str | None = None
    provider_payment_id: str | None = None
    raw_payload: str | None = None


class ApproveOrderRequest(BaseModel):
    operator_id: str
    deadline: date
    admin_notes: str | None = None
    expected_revision: int | None = None


class RejectOrderRequest(BaseModel):
    reason: str | None = None
    expected_revision: int | None = None


class AdvanceStatusRequest(BaseModel):
    new_status: str
    notes: str | None = None
    tracking_number: str | None = None
    expected_revision: int | None = None


class StartProductionRequest(BaseModel):
    notes: str | None = None
    expected_revision: int | None = None


class ReadyForDeliveryRequest(BaseModel):
    preparation_notes: str | None = None
    expected_revision: int | None = None


class OutForDeliveryRequest(BaseModel):
    tracking_number: str | None = None
    expected_revision: int | None = None


class DeliveredRequest(BaseModel):
    expected_revision: int | None = None


class RetryFollowUpsRequest(BaseModel):
    limit: int | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class PaymentConfirmationResponse(BaseModel):
    order_number: str
    payment_verified: bool
    status: str
    payment_status: str


class RetryFollowUpsResponse(BaseModel):
    completed: int = 0
    failed: int = 0
    abandoned: int = 0
