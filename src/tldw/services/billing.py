"""Plan purchases through the payment gateway.

Flow: the client asks for an order (``create_order``), completes checkout
with the gateway, then posts the signed result to ``verify_payment``. The
gateway also reports captured payments through a signed webhook, which
activates the plan if the client never came back.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from tldw.adapters.payments import GatewayOrder, PaymentGateway, get_payment_gateway
from tldw.db.models import PaymentModel, UserModel
from tldw.domain.enums import BillingCycle
from tldw.domain.errors import PaymentVerificationFailed
from tldw.logging import get_logger
from tldw.services.subscriptions import SubscriptionService
from tldw.utils.time import ensure_utc, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanPrice:
    """A purchasable plan."""

    plan_type: str
    amount: int  # minor units (paise)
    currency: str
    duration_days: int
    billing_cycle: BillingCycle


PLANS: dict[str, PlanPrice] = {
    "pro_monthly": PlanPrice("pro_monthly", 79900, "INR", 30, BillingCycle.MONTHLY),
    "pro_yearly": PlanPrice("pro_yearly", 799900, "INR", 365, BillingCycle.YEARLY),
}


def get_plan(plan_type: str) -> PlanPrice:
    try:
        return PLANS[plan_type]
    except KeyError:
        raise ValueError(f"Invalid plan: {plan_type}") from None


@dataclass
class WebhookOutcome:
    """What a webhook delivery did."""

    event: str
    handled: bool
    user_id: str | None = None


class BillingService:
    """Orders, payment verification, webhooks and payment history."""

    def __init__(
        self,
        session: Session,
        gateway: PaymentGateway | None = None,
        subscriptions: SubscriptionService | None = None,
    ) -> None:
        self.session = session
        self.gateway = get_payment_gateway() if gateway is None else gateway
        self.subscriptions = (
            SubscriptionService(session) if subscriptions is None else subscriptions
        )

    def create_order(self, user: UserModel, plan_type: str) -> GatewayOrder:
        plan = get_plan(plan_type)
        order = self.gateway.create_order(
            amount=plan.amount,
            currency=plan.currency,
            receipt=f"receipt_{int(time.time() * 1000)}",
            notes={"user_id": str(user.id), "plan_type": plan.plan_type, "email": user.email},
        )
        logger.info(
            "payment_order_created",
            user_id=str(user.id),
            order_id=order.id,
            plan_type=plan.plan_type,
        )
        return order

    def verify_payment(
        self,
        user: UserModel,
        order_id: str,
        payment_id: str,
        signature: str,
        plan_type: str,
        now: datetime | None = None,
    ) -> PaymentModel:
        """Verify a checkout result and activate the purchased plan.

        Raises:
            PaymentVerificationFailed: On a bad signature or an unsuccessful
                payment. Nothing is changed in that case.
            ValueError: For an unknown plan.
        """
        plan = get_plan(plan_type)

        if not self.gateway.verify_payment_signature(order_id, payment_id, signature):
            logger.warning("payment_signature_invalid", user_id=str(user.id), order_id=order_id)
            raise PaymentVerificationFailed("Invalid signature")

        payment = self.gateway.fetch_payment(payment_id)
        if not payment.is_successful:
            logger.warning(
                "payment_not_successful",
                user_id=str(user.id),
                payment_id=payment_id,
                status=payment.status,
            )
            raise PaymentVerificationFailed("Payment not successful")

        existing = self._find_payment(payment_id)
        if existing is not None:
            # Already applied (webhook got there first)
            return existing

        record = self._activate(
            user,
            plan,
            order_id=order_id,
            payment_id=payment_id,
            amount=payment.amount or plan.amount,
            currency=payment.currency or plan.currency,
            status=payment.status,
            method=payment.method,
            now=now,
        )
        logger.info("payment_verified", user_id=str(user.id), payment_id=payment_id)
        return record

    def handle_webhook(
        self,
        body: bytes,
        signature: str | None,
        now: datetime | None = None,
    ) -> WebhookOutcome:
        """Apply a gateway webhook delivery.

        Raises:
            PaymentVerificationFailed: For a missing or bad signature.
        """
        if not signature or not self.gateway.verify_webhook_signature(body, signature):
            logger.warning("webhook_signature_invalid")
            raise PaymentVerificationFailed("Signature verification failed")

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise PaymentVerificationFailed("Malformed webhook body") from e

        event_type = event.get("event", "")
        logger.info("webhook_received", event_type=event_type)
        if event_type != "payment.captured":
            return WebhookOutcome(event=event_type, handled=False)

        entity = (event.get("payload") or {}).get("payment", {}).get("entity", {})
        notes = entity.get("notes") or {}
        user_id = notes.get("user_id") or notes.get("userId")
        plan_type = notes.get("plan_type") or notes.get("planType")
        if not user_id or plan_type not in PLANS:
            logger.warning("webhook_missing_notes", payment_id=entity.get("id"))
            return WebhookOutcome(event=event_type, handled=False)

        try:
            user = self.session.get(UserModel, UUID(str(user_id)))
        except ValueError:
            user = None
        if user is None:
            logger.warning("webhook_unknown_user", user_id=user_id)
            return WebhookOutcome(event=event_type, handled=False, user_id=str(user_id))

        payment_id = entity.get("id")
        if payment_id and self._find_payment(payment_id) is not None:
            return WebhookOutcome(event=event_type, handled=True, user_id=str(user.id))

        plan = PLANS[plan_type]
        self._activate(
            user,
            plan,
            order_id=entity.get("order_id") or "",
            payment_id=payment_id,
            amount=entity.get("amount") or plan.amount,
            currency=entity.get("currency") or plan.currency,
            status=entity.get("status") or "captured",
            method=entity.get("method"),
            now=now,
        )
        logger.info("webhook_subscription_activated", user_id=str(user.id), plan_type=plan_type)
        return WebhookOutcome(event=event_type, handled=True, user_id=str(user.id))

    def cancel_subscription(self, user: UserModel, now: datetime | None = None) -> None:
        self.subscriptions.cancel(user, now=now)

    def payment_history(self, user: UserModel) -> list[PaymentModel]:
        return list(
            self.session.execute(
                select(PaymentModel)
                .where(PaymentModel.user_id == user.id)
                .order_by(PaymentModel.created_at.desc())
            ).scalars()
        )

    def _find_payment(self, payment_id: str) -> PaymentModel | None:
        return self.session.execute(
            select(PaymentModel).where(PaymentModel.payment_id == payment_id)
        ).scalar_one_or_none()

    def _activate(
        self,
        user: UserModel,
        plan: PlanPrice,
        order_id: str,
        payment_id: str | None,
        amount: int,
        currency: str,
        status: str,
        method: str | None,
        now: datetime | None,
    ) -> PaymentModel:
        now = ensure_utc(now or utcnow())
        record = PaymentModel(
            user_id=user.id,
            order_id=order_id,
            payment_id=payment_id,
            plan_type=plan.plan_type,
            amount_minor=amount,
            currency=currency,
            status=status,
            method=method,
            created_at=now,
        )
        self.session.add(record)
        self.subscriptions.upgrade(
            user,
            plan.billing_cycle,
            plan.duration_days,
            now=now,
            metadata={"order_id": order_id, "payment_id": payment_id, "plan_type": plan.plan_type},
        )
        self.session.flush()
        return record


def payment_to_dict(payment: PaymentModel) -> dict[str, Any]:
    return {
        "order_id": payment.order_id,
        "payment_id": payment.payment_id,
        "plan_type": payment.plan_type,
        "amount": payment.amount_minor / 100,
        "currency": payment.currency,
        "status": payment.status,
        "method": payment.method,
        "created_at": payment.created_at.isoformat(),
    }
