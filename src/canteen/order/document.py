"""Wire format of a persisted order document.

Field names and status strings are fixed by the existing clients. Status
fields are closed ``Literal`` unions, so an unknown status string is
rejected at the boundary instead of entering the system.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OrderStatusValue = Literal["awaiting_payment", "pending", "preparing", "ready", "completed", "cancelled"]
WalletStatusValue = Literal["pending", "awaiting_verification", "verified", "failed", "expired"]


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Customization(_Document):
    name: str
    price: float = Field(ge=0)


class OrderItemDocument(_Document):
    menu_item_id: str
    name: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    customizations: list[Customization] = []


class WalletPaymentDocument(_Document):
    status: WalletStatusValue
    reference_code: str
    amount: float = Field(ge=0)
    vendor_wallet_handle: str | None = None
    created_at: datetime
    expires_at: datetime
    submitted_at: datetime | None = None


class OrderDocument(_Document):
    order_id: str
    parent_order_id: str
    customer_id: str
    vendor_id: str
    status: OrderStatusValue
    items: list[OrderItemDocument]
    subtotal: float = Field(ge=0)
    total_amount: float = Field(ge=0)
    voucher_discount: float = Field(default=0.0, ge=0)
    payment_method: Literal["cash", "wallet"]
    cash_amount: float | None = None
    change_due: float | None = None
    wallet_payment: WalletPaymentDocument | None = None
    special_instructions: str | None = None
    scheduled_time: str | None = None
    group_order_emails: list[str] | None = None
    is_multi_stall_order: bool = False
    main_order_id: str
    created_at: datetime
    updated_at: datetime
    cancel_reason: str | None = None

    @classmethod
    def from_order(cls, order):
        wallet = order.wallet_payment
        return cls(
            order_id=str(order.order_id),
            parent_order_id=str(order.parent_order_id),
            customer_id=str(order.customer_id),
            vendor_id=str(order.vendor_id),
            status=order.status,
            items=[
                OrderItemDocument(
                    menu_item_id=str(line.menu_item_id),
                    name=line.name,
                    quantity=line.quantity,
                    price=line.unit_price,
                    customizations=[Customization(**add_on) for add_on in line.add_on_list()],
                )
                for line in order.lines
            ],
            subtotal=order.subtotal,
            total_amount=order.total_amount,
            voucher_discount=order.voucher_discount or 0.0,
            payment_method=order.payment_method,
            cash_amount=order.cash_amount,
            change_due=order.change_due,
            wallet_payment=(
                WalletPaymentDocument(
                    status=wallet.status,
                    reference_code=wallet.reference_code,
                    amount=wallet.amount_expected,
                    vendor_wallet_handle=wallet.vendor_wallet_handle,
                    created_at=wallet.created_at,
                    expires_at=wallet.expires_at,
                    submitted_at=wallet.submitted_at,
                )
                if wallet is not None
                else None
            ),
            special_instructions=order.special_instructions,
            scheduled_time=order.scheduled_time,
            group_order_emails=order.group_order_email_list() or None,
            is_multi_stall_order=bool(order.is_multi_stall_order),
            main_order_id=str(order.parent_order_id),
            created_at=order.created_at,
            updated_at=order.updated_at,
            cancel_reason=order.cancel_reason,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
