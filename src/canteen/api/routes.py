"""FastAPI routes for the canteen: stalls, carts, orders, payments and loyalty.

Callers identify themselves with ``X-Actor-Id`` and ``X-Actor-Role``
headers set by the authenticating gateway in front of this service.
"""

import json
from dataclasses import dataclass

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from canteen.api.errors import RESULT_STATUS_CODES, error_body
from canteen.api.schemas import (
    AddMenuItemRequest,
    AddToCartRequest,
    BoardEntrySchema,
    CancelOrderRequest,
    CheckoutRequestSchema,
    CheckoutResponse,
    CompleteOrderRequest,
    ExpirePaymentsRequest,
    ExpirePaymentsResponse,
    IdResponse,
    IssueVoucherRequest,
    LoyaltyAccountResponse,
    RedeemPointsRequest,
    RedeemPointsResponse,
    RegisterVendorRequest,
    RestockRequest,
    StatusResponse,
    SubmitPaymentRequest,
    SubmitPaymentResponse,
    UpdateCartQuantityRequest,
    VendorBoardResponse,
    VerifyPaymentRequest,
    WalletSettingsRequest,
)
from canteen.cart.management import AddToCart, CreateCart, RemoveFromCart, UpdateCartQuantity
from canteen.checkout.composer import CheckoutRequest, OrderComposer
from canteen.loyalty.account import LoyaltyAccount
from canteen.loyalty.redemption import RedeemPoints
from canteen.loyalty.vouchers import IssueVoucher
from canteen.menu.management import AddMenuItem, RegisterVendor, RestockMenuItem, UpdateWalletSettings
from canteen.menu.vendor import Vendor
from canteen.order.cancellation import CancelOrder
from canteen.order.completion import CompleteOrder
from canteen.order.document import OrderDocument
from canteen.order.order import Actor, Order
from canteen.order.preparation import AcceptOrder, MarkOrderReady
from canteen.payment.expiry import ExpireUnpaidOrders
from canteen.payment.submission import SubmitWalletPayment
from canteen.payment.verification import VerifyWalletPayment
from canteen.payment.wallet import payment_instructions
from canteen.projections.vendor_board import vendor_board
from canteen.settings import get_settings


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Caller:
    actor_id: str
    role: str
    email_verified: bool


def current_caller(
    x_actor_id: str = Header(default=""),
    x_actor_role: str = Header(default=Actor.CUSTOMER.value),
    x_email_verified: str = Header(default="true"),
) -> Caller:
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    if x_actor_role not in {Actor.CUSTOMER.value, Actor.VENDOR.value, Actor.ADMIN.value}:
        raise HTTPException(status_code=403, detail="Unknown role")
    return Caller(
        actor_id=x_actor_id,
        role=x_actor_role,
        email_verified=x_email_verified.lower() in ("1", "true", "yes"),
    )


def _require_admin(caller: Caller):
    if caller.role != Actor.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin access required")


# ---------------------------------------------------------------------------
# Vendor Router
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendors", tags=["vendors"])


@vendor_router.post("", status_code=201, response_model=IdResponse)
async def register_vendor(body: RegisterVendorRequest, caller: Caller = Depends(current_caller)) -> IdResponse:
    command = RegisterVendor(
        name=body.name,
        owner_id=caller.actor_id,
        wallet_handle=body.wallet_handle,
        wallet_name=body.wallet_name,
    )
    result = current_domain.process(command, asynchronous=False)
    return IdResponse(id=result)


@vendor_router.put("/{vendor_id}/wallet", response_model=StatusResponse)
async def update_wallet_settings(
    vendor_id: str, body: WalletSettingsRequest, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = UpdateWalletSettings(
        vendor_id=vendor_id,
        actor_id=caller.actor_id,
        wallet_handle=body.wallet_handle,
        wallet_name=body.wallet_name,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@vendor_router.post("/{vendor_id}/menu-items", status_code=201, response_model=IdResponse)
async def add_menu_item(
    vendor_id: str, body: AddMenuItemRequest, caller: Caller = Depends(current_caller)
) -> IdResponse:
    command = AddMenuItem(
        vendor_id=vendor_id,
        actor_id=caller.actor_id,
        name=body.name,
        price=body.price,
        stock=body.stock,
    )
    result = current_domain.process(command, asynchronous=False)
    return IdResponse(id=result)


@vendor_router.get("/{vendor_id}/board", response_model=VendorBoardResponse)
async def get_vendor_board(
    vendor_id: str, include_closed: bool = False, caller: Caller = Depends(current_caller)
) -> VendorBoardResponse:
    vendor = current_domain.repository_for(Vendor).get(vendor_id)
    if caller.role != Actor.ADMIN.value:
        vendor.assert_owned_by(caller.actor_id)

    entries = vendor_board(vendor_id, include_closed=include_closed)
    return VendorBoardResponse(
        refresh_interval_seconds=get_settings().board_refresh_seconds,
        orders=[BoardEntrySchema.model_validate(entry, from_attributes=True) for entry in entries],
    )


menu_item_router = APIRouter(prefix="/menu-items", tags=["menu"])


@menu_item_router.put("/{menu_item_id}/restock", response_model=StatusResponse)
async def restock_menu_item(
    menu_item_id: str, body: RestockRequest, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = RestockMenuItem(menu_item_id=menu_item_id, actor_id=caller.actor_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=IdResponse)
async def create_cart(caller: Caller = Depends(current_caller)) -> IdResponse:
    result = current_domain.process(CreateCart(customer_id=caller.actor_id), asynchronous=False)
    return IdResponse(id=result)


@cart_router.post("/{cart_id}/items", status_code=201, response_model=IdResponse)
async def add_to_cart(cart_id: str, body: AddToCartRequest, caller: Caller = Depends(current_caller)) -> IdResponse:
    command = AddToCart(
        cart_id=cart_id,
        menu_item_id=body.menu_item_id,
        quantity=body.quantity,
        add_ons=json.dumps([add_on.model_dump() for add_on in body.add_ons]) if body.add_ons else None,
        note=body.note,
    )
    result = current_domain.process(command, asynchronous=False)
    return IdResponse(id=result)


@cart_router.put("/{cart_id}/items/{line_id}", response_model=StatusResponse)
async def update_cart_quantity(
    cart_id: str, line_id: str, body: UpdateCartQuantityRequest, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = UpdateCartQuantity(cart_id=cart_id, line_id=line_id, new_quantity=body.new_quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{line_id}", response_model=StatusResponse)
async def remove_from_cart(cart_id: str, line_id: str, caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(RemoveFromCart(cart_id=cart_id, line_id=line_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(cart_id: str, body: CheckoutRequestSchema, caller: Caller = Depends(current_caller)):
    request = CheckoutRequest(
        customer_id=caller.actor_id,
        cart_id=cart_id,
        payment_method=body.payment_method,
        voucher_id=body.voucher_id,
        cash_tendered=body.cash_amount,
        email_verified=caller.email_verified,
        special_instructions=body.special_instructions,
        scheduled_time=body.scheduled_time,
        group_order_emails=tuple(body.group_order_emails),
    )
    result = OrderComposer().checkout(request)
    if not result.ok:
        return JSONResponse(
            status_code=RESULT_STATUS_CODES.get(result.kind, 400),
            content=error_body(result.kind, result.detail),
        )

    return CheckoutResponse(
        parent_order_id=result.parent_order_id,
        order_ids=list(result.order_ids),
        total_due=result.total_due,
        change_due=result.change_due,
        flagged_order_ids=list(result.flagged_order_ids),
        voucher_committed=result.voucher_committed,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _load_visible_order(order_id: str, caller: Caller) -> Order:
    order = current_domain.repository_for(Order).get(order_id)
    if caller.role == Actor.ADMIN.value or str(order.customer_id) == caller.actor_id:
        return order

    vendor = current_domain.repository_for(Vendor).get(order.vendor_id)
    vendor.assert_owned_by(caller.actor_id)
    return order


@order_router.get("/{order_id}")
async def get_order(order_id: str, caller: Caller = Depends(current_caller)) -> dict:
    order = _load_visible_order(order_id, caller)
    return OrderDocument.from_order(order).to_wire()


@order_router.get("/{order_id}/payment-instructions")
async def get_payment_instructions(order_id: str, caller: Caller = Depends(current_caller)) -> dict:
    order = _load_visible_order(order_id, caller)
    instructions = payment_instructions(order)
    if instructions is None:
        raise HTTPException(status_code=404, detail="Order is not paid by wallet")
    return instructions


@order_router.put("/{order_id}/accept", response_model=StatusResponse)
async def accept_order(order_id: str, caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(AcceptOrder(order_id=order_id, actor_id=caller.actor_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/ready", response_model=StatusResponse)
async def mark_order_ready(order_id: str, caller: Caller = Depends(current_caller)) -> StatusResponse:
    current_domain.process(MarkOrderReady(order_id=order_id, actor_id=caller.actor_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/complete", response_model=StatusResponse)
async def complete_order(
    order_id: str, body: CompleteOrderRequest | None = None, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = CompleteOrder(order_id=order_id, actor_id=caller.actor_id, token=body.token if body else None)
    changed = current_domain.process(command, asynchronous=False)
    return StatusResponse(status="ok" if changed else "already_completed")


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest | None = None, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = CancelOrder(
        order_id=order_id,
        actor=caller.role,
        actor_id=caller.actor_id,
        reason=body.reason if body else None,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.post("/{order_id}/submit-payment", response_model=SubmitPaymentResponse)
async def submit_payment(
    order_id: str, body: SubmitPaymentRequest, caller: Caller = Depends(current_caller)
) -> SubmitPaymentResponse:
    command = SubmitWalletPayment(
        order_id=order_id,
        actor_id=caller.actor_id,
        wallet_reference_number=body.wallet_reference_number,
        sender_number=body.wallet_sender_number,
    )
    result = current_domain.process(command, asynchronous=False)
    return SubmitPaymentResponse(**result.as_dict())


@order_router.put("/{order_id}/verify-payment", response_model=StatusResponse)
async def verify_payment(
    order_id: str, body: VerifyPaymentRequest, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    command = VerifyWalletPayment(order_id=order_id, actor_id=caller.actor_id, accepted=body.accepted)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Loyalty & voucher routers
# ---------------------------------------------------------------------------
loyalty_router = APIRouter(prefix="/loyalty", tags=["loyalty"])


@loyalty_router.get("/{customer_id}", response_model=LoyaltyAccountResponse)
async def get_loyalty_account(customer_id: str, caller: Caller = Depends(current_caller)) -> LoyaltyAccountResponse:
    if caller.role != Actor.ADMIN.value and caller.actor_id != customer_id:
        raise HTTPException(status_code=403, detail="Not your loyalty account")

    account = current_domain.repository_for(LoyaltyAccount).get(customer_id)
    return LoyaltyAccountResponse(
        customer_id=str(account.customer_id),
        points=account.points,
        lifetime_points=account.lifetime_points,
        tier=account.tier,
    )


@loyalty_router.post("/redeem", status_code=201, response_model=RedeemPointsResponse)
async def redeem_points(body: RedeemPointsRequest, caller: Caller = Depends(current_caller)) -> RedeemPointsResponse:
    result = current_domain.process(RedeemPoints(customer_id=caller.actor_id, points=body.points), asynchronous=False)
    return RedeemPointsResponse(**result)


voucher_router = APIRouter(prefix="/vouchers", tags=["vouchers"])


@voucher_router.post("", status_code=201, response_model=IdResponse)
async def issue_voucher(body: IssueVoucherRequest, caller: Caller = Depends(current_caller)) -> IdResponse:
    _require_admin(caller)
    command = IssueVoucher(
        code=body.code,
        discount_value=body.discount_value,
        discount_type=body.discount_type,
        description=body.description,
        target_customer_ids=json.dumps(body.target_customer_ids) if body.target_customer_ids else None,
        max_discount=body.max_discount,
        min_order_amount=body.min_order_amount,
        max_usage=body.max_usage,
        valid_until=body.valid_until,
    )
    result = current_domain.process(command, asynchronous=False)
    return IdResponse(id=result)


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-payments", response_model=ExpirePaymentsResponse)
async def expire_payments(
    body: ExpirePaymentsRequest | None = None, caller: Caller = Depends(current_caller)
) -> ExpirePaymentsResponse:
    _require_admin(caller)
    expired = current_domain.process(
        ExpireUnpaidOrders(as_of=body.as_of if body else None),
        asynchronous=False,
    )
    return ExpirePaymentsResponse(expired=expired or 0)
