"""Pydantic request/response schemas for the canteen API.

These are external contracts, kept separate from the Protean commands
they are translated into.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class IdResponse(BaseModel):
    id: str


class AddOnSchema(BaseModel):
    name: str
    price: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Vendors & menu
# ---------------------------------------------------------------------------
class RegisterVendorRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    wallet_handle: str | None = None
    wallet_name: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Ate Nena's Silog",
                    "wallet_handle": "09171234567",
                    "wallet_name": "Nena Santos",
                }
            ]
        }
    }


class WalletSettingsRequest(BaseModel):
    wallet_handle: str | None = None
    wallet_name: str | None = None


class AddMenuItemRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class BoardEntrySchema(BaseModel):
    order_id: str
    customer_id: str
    status: str
    payment_method: str | None = None
    wallet_status: str | None = None
    total_amount: float | None = None
    item_count: int = 0
    flagged_for_review: bool = False
    placed_at: datetime | None = None


class VendorBoardResponse(BaseModel):
    refresh_interval_seconds: int
    orders: list[BoardEntrySchema]


# ---------------------------------------------------------------------------
# Cart & checkout
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    menu_item_id: str
    quantity: int = Field(ge=1)
    add_ons: list[AddOnSchema] = []
    note: str | None = Field(default=None, max_length=255)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class CheckoutRequestSchema(BaseModel):
    payment_method: Literal["cash", "wallet"]
    voucher_id: str | None = None
    cash_amount: float | None = Field(default=None, ge=0)
    special_instructions: str | None = Field(default=None, max_length=500)
    scheduled_time: str | None = None
    group_order_emails: list[str] = []

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "payment_method": "cash",
                    "voucher_id": None,
                    "cash_amount": 500.0,
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    parent_order_id: str
    order_ids: list[str]
    total_due: float
    change_due: float | None = None
    flagged_order_ids: list[str] = []
    voucher_committed: bool | None = None


# ---------------------------------------------------------------------------
# Orders & payments
# ---------------------------------------------------------------------------
class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CompleteOrderRequest(BaseModel):
    token: str | None = None


class SubmitPaymentRequest(BaseModel):
    wallet_reference_number: str = Field(alias="walletReferenceNumber")
    wallet_sender_number: str | None = Field(default=None, alias="walletSenderNumber")

    model_config = {"populate_by_name": True}


class SubmitPaymentResponse(BaseModel):
    success: bool
    message: str


class VerifyPaymentRequest(BaseModel):
    accepted: bool


class ExpirePaymentsRequest(BaseModel):
    as_of: datetime | None = None


class ExpirePaymentsResponse(BaseModel):
    expired: int


# ---------------------------------------------------------------------------
# Loyalty & vouchers
# ---------------------------------------------------------------------------
class LoyaltyAccountResponse(BaseModel):
    customer_id: str
    points: int
    lifetime_points: int
    tier: str


class RedeemPointsRequest(BaseModel):
    points: int = Field(ge=100)


class RedeemPointsResponse(BaseModel):
    voucher_id: str
    code: str
    discount: float


class IssueVoucherRequest(BaseModel):
    code: str = Field(min_length=3, max_length=40)
    discount_value: float = Field(ge=0)
    discount_type: Literal["fixed", "percentage"] = "fixed"
    description: str | None = None
    target_customer_ids: list[str] = []
    max_discount: float | None = Field(default=None, ge=0)
    min_order_amount: float = Field(default=0.0, ge=0)
    max_usage: int = Field(default=1, ge=1)
    valid_until: datetime | None = None
