"""Plan purchase endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from tldw.api.deps import ClockDep, CurrentUserDep, PaymentGatewayDep, SessionDep
from tldw.domain.errors import PaymentVerificationFailed
from tldw.logging import get_logger
from tldw.services.billing import PLANS, BillingService, payment_to_dict

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


class PlanResponse(BaseModel):
    plan_type: str
    amount: int
    currency: str
    duration_days: int
    billing_cycle: str


class CreateOrderRequest(BaseModel):
    plan_type: str = Field(..., description="pro_monthly or pro_yearly")


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: int
    currency: str
    key_id: str | None = None


class VerifyPaymentRequest(BaseModel):
    """Checkout result as returned by the gateway's client widget."""

    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    plan_type: str


class VerifyPaymentResponse(BaseModel):
    success: bool
    plan: str
    current_period_end: str | None = None
    payment: dict[str, Any]


def _bad_request(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": message, "code": code},
    )


@router.get("/plans", response_model=list[PlanResponse], summary="List purchasable plans")
async def list_plans() -> list[PlanResponse]:
    return [
        PlanResponse(
            plan_type=plan.plan_type,
            amount=plan.amount,
            currency=plan.currency,
            duration_days=plan.duration_days,
            billing_cycle=str(plan.billing_cycle),
        )
        for plan in PLANS.values()
    ]


@router.post("/create-order", response_model=CreateOrderResponse, summary="Create a checkout order")
async def create_order(
    request: CreateOrderRequest,
    user: CurrentUserDep,
    session: SessionDep,
    gateway: PaymentGatewayDep,
) -> CreateOrderResponse:
    try:
        order = BillingService(session, gateway=gateway).create_order(user, request.plan_type)
    except ValueError as e:
        raise _bad_request(str(e), "INVALID_PLAN") from e
    return CreateOrderResponse(
        order_id=order.id,
        amount=order.amount,
        currency=order.currency,
        key_id=gateway.key_id,
    )


@router.post("/verify", response_model=VerifyPaymentResponse, summary="Verify a completed checkout")
async def verify_payment(
    request: VerifyPaymentRequest,
    user: CurrentUserDep,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    clock: ClockDep,
) -> VerifyPaymentResponse:
    billing = BillingService(session, gateway=gateway)
    try:
        payment = billing.verify_payment(
            user,
            order_id=request.razorpay_order_id,
            payment_id=request.razorpay_payment_id,
            signature=request.razorpay_signature,
            plan_type=request.plan_type,
            now=clock(),
        )
    except PaymentVerificationFailed as e:
        session.rollback()
        raise _bad_request(str(e), "PAYMENT_VERIFICATION_FAILED") from e
    except ValueError as e:
        session.rollback()
        raise _bad_request(str(e), "INVALID_PLAN") from e
    session.commit()

    return VerifyPaymentResponse(
        success=True,
        plan=user.plan,
        current_period_end=user.current_period_end.isoformat() if user.current_period_end else None,
        payment=payment_to_dict(payment),
    )


@router.post("/webhook", summary="Payment gateway webhook")
async def payment_webhook(
    request: Request,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    clock: ClockDep,
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    body = await request.body()
    try:
        outcome = BillingService(session, gateway=gateway).handle_webhook(
            body, x_razorpay_signature, now=clock()
        )
    except PaymentVerificationFailed as e:
        session.rollback()
        raise _bad_request(str(e), "INVALID_SIGNATURE") from e
    session.commit()
    return {"status": "ok", "event": outcome.event, "handled": outcome.handled}


@router.post("/cancel-subscription", summary="Cancel at the end of the paid period")
async def cancel_subscription(
    user: CurrentUserDep,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    clock: ClockDep,
) -> dict[str, Any]:
    if not user.is_premium:
        raise _bad_request("No active subscription", "NO_SUBSCRIPTION")

    BillingService(session, gateway=gateway).cancel_subscription(user, now=clock())
    session.commit()
    return {
        "success": True,
        "cancel_at_period_end": user.cancel_at_period_end,
        "current_period_end": user.current_period_end.isoformat() if user.current_period_end else None,
    }


@router.get("/history", summary="Payment history")
async def payment_history(
    user: CurrentUserDep,
    session: SessionDep,
    gateway: PaymentGatewayDep,
) -> dict[str, Any]:
    payments = BillingService(session, gateway=gateway).payment_history(user)
    return {"payments": [payment_to_dict(p) for p in payments], "total": len(payments)}
