"""Tests for plan purchases, webhooks and cancellation."""

import json
import logging
from datetime import UTC, datetime

import pytest

from tldw.adapters.payments.base import GatewayPayment
from tldw.domain.enums import Plan, TransactionType
from tldw.domain.errors import PaymentVerificationFailed
from tldw.services.billing import BillingService, get_plan, payment_to_dict


@pytest.fixture
def billing(session, payment_gateway) -> BillingService:
    return BillingService(session, gateway=payment_gateway)


def _webhook_body(user_id: str, plan_type: str = "pro_monthly", payment_id: str = "pay_hook1") -> bytes:
    return json.dumps(
        {
            "event": "payment.captured",
            "payload": {
                "payment": {
                    "entity": {
                        "id": payment_id,
                        "order_id": "order_hook1",
                        "amount": 79900,
                        "currency": "INR",
                        "status": "captured",
                        "method": "upi",
                        "notes": {"user_id": user_id, "plan_type": plan_type},
                    }
                }
            },
        }
    ).encode()


def test_get_plan_rejects_unknown() -> None:
    assert get_plan("pro_yearly").duration_days == 365
    with pytest.raises(ValueError, match="Invalid plan"):
        get_plan("pro_lifetime")


def test_create_order_carries_user_notes(billing, make_user) -> None:
    user = make_user()

    order = billing.create_order(user, "pro_monthly")

    assert order.amount == 79900
    assert order.currency == "INR"
    assert order.notes["user_id"] == str(user.id)
    assert order.notes["plan_type"] == "pro_monthly"


def test_verify_payment_upgrades_user(billing, make_user, payment_gateway, now) -> None:
    user = make_user(credit_balance=2)
    signature = payment_gateway.sign_payment("order_1", "pay_1")

    payment = billing.verify_payment(user, "order_1", "pay_1", signature, "pro_monthly", now=now)

    assert payment.status == "captured"
    assert payment.amount_minor == 79900
    assert user.plan == Plan.PRO
    assert user.is_premium is True
    assert user.current_period_end == datetime(2026, 4, 14, 12, 0, tzinfo=UTC)
    assert user.features["premium_ai_models"] is True
    assert user.credit_transactions[-1].type == TransactionType.ADMIN_ADJUSTMENT
    assert user.credit_transactions[-1].metadata_["payment_id"] == "pay_1"
    assert billing.payment_history(user) == [payment]
    assert payment_to_dict(payment)["amount"] == 799.0


def test_bad_signature_changes_nothing(billing, make_user, now) -> None:
    user = make_user(credit_balance=2)
    entries = len(user.credit_transactions)

    with pytest.raises(PaymentVerificationFailed):
        billing.verify_payment(user, "order_1", "pay_1", "forged", "pro_monthly", now=now)

    assert user.plan == Plan.FREE
    assert len(user.credit_transactions) == entries
    assert billing.payment_history(user) == []


def test_unsuccessful_payment_is_rejected(billing, make_user, payment_gateway, now) -> None:
    user = make_user()
    payment_gateway.add_payment(
        GatewayPayment(id="pay_f", order_id="order_f", amount=79900, currency="INR", status="failed")
    )

    with pytest.raises(PaymentVerificationFailed, match="not successful"):
        billing.verify_payment(
            user, "order_f", "pay_f", payment_gateway.sign_payment("order_f", "pay_f"), "pro_monthly", now=now
        )
    assert user.plan == Plan.FREE


def test_verify_payment_is_idempotent(billing, make_user, payment_gateway, now) -> None:
    user = make_user()
    signature = payment_gateway.sign_payment("order_1", "pay_1")
    first = billing.verify_payment(user, "order_1", "pay_1", signature, "pro_monthly", now=now)
    entries = len(user.credit_transactions)

    second = billing.verify_payment(user, "order_1", "pay_1", signature, "pro_monthly", now=now)

    assert second is first
    assert len(user.credit_transactions) == entries


def test_webhook_activates_plan(billing, make_user, payment_gateway, now) -> None:
    user = make_user()
    body = _webhook_body(str(user.id), plan_type="pro_yearly")

    outcome = billing.handle_webhook(body, payment_gateway.sign_webhook(body), now=now)

    assert outcome.handled is True
    assert outcome.user_id == str(user.id)
    assert user.plan == Plan.PRO
    assert user.billing_cycle == "yearly"

    # Redelivery is a no-op
    again = billing.handle_webhook(body, payment_gateway.sign_webhook(body), now=now)
    assert again.handled is True
    assert len(billing.payment_history(user)) == 1


def test_captured_payment_webhook_upgrades_with_info_logging(
    billing, make_user, payment_gateway, now, caplog
) -> None:
    """The webhook path logs at INFO before dispatching; the log call must not fail."""
    caplog.set_level(logging.INFO)
    user = make_user()
    body = _webhook_body(str(user.id))

    outcome = billing.handle_webhook(body, payment_gateway.sign_webhook(body), now=now)

    assert outcome.handled is True
    assert user.plan == Plan.PRO
    assert user.subscription_status == "active"
    assert outcome.event == "payment.captured"


def test_webhook_signature_required(billing, make_user) -> None:
    body = _webhook_body(str(make_user().id))

    with pytest.raises(PaymentVerificationFailed):
        billing.handle_webhook(body, None)
    with pytest.raises(PaymentVerificationFailed):
        billing.handle_webhook(body, "0" * 64)


def test_webhook_ignores_other_events(billing, payment_gateway) -> None:
    body = json.dumps({"event": "order.paid", "payload": {}}).encode()

    outcome = billing.handle_webhook(body, payment_gateway.sign_webhook(body))

    assert outcome.event == "order.paid"
    assert outcome.handled is False


def test_webhook_for_unknown_user_is_not_handled(billing, payment_gateway) -> None:
    body = _webhook_body("5b7a3f0e-8c1d-4e2a-9f61-000000000000")

    outcome = billing.handle_webhook(body, payment_gateway.sign_webhook(body))

    assert outcome.handled is False


def test_cancel_keeps_plan_until_period_end(billing, make_user, now) -> None:
    user = make_user(plan="pro")

    billing.cancel_subscription(user, now=now)

    assert user.plan == Plan.PRO
    assert user.is_premium is True
    assert user.cancel_at_period_end is True
    assert user.auto_renew is False
    assert user.cancelled_at == now
    assert user.credit_transactions[-1].description.startswith("Subscription cancelled")
