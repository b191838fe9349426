"""Stub payment gateway for development and testing."""

import hmac
import secrets

from tldw.adapters.payments.base import (
    GatewayOrder,
    GatewayPayment,
    PaymentGateway,
    hmac_sha256_hex,
)
from tldw.logging import get_logger

logger = get_logger(__name__)


class StubPaymentGateway(PaymentGateway):
    """In-memory gateway that signs like Razorpay.

    Payments registered with ``add_payment`` are returned by
    ``fetch_payment``; unknown ids are reported as captured.
    """

    def __init__(
        self,
        key_secret: str = "stub_key_secret",
        webhook_secret: str = "stub_webhook_secret",
    ) -> None:
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.orders: dict[str, GatewayOrder] = {}
        self.payments: dict[str, GatewayPayment] = {}

    @property
    def name(self) -> str:
        return "stub"

    @property
    def key_id(self) -> str | None:
        return "rzp_test_stub"

    def create_order(
        self, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder:
        order = GatewayOrder(
            id=f"order_{secrets.token_hex(7)}",
            amount=amount,
            currency=currency,
            receipt=receipt,
            notes=dict(notes),
        )
        self.orders[order.id] = order
        logger.info("stub_order_created", order_id=order.id, amount=amount)
        return order

    def add_payment(self, payment: GatewayPayment) -> None:
        self.payments[payment.id] = payment

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        if payment_id in self.payments:
            return self.payments[payment_id]
        return GatewayPayment(
            id=payment_id,
            order_id=None,
            amount=0,
            currency="INR",
            status="captured",
            method="card",
        )

    def sign_payment(self, order_id: str, payment_id: str) -> str:
        return hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}")

    def sign_webhook(self, body: bytes) -> str:
        return hmac_sha256_hex(self.webhook_secret, body)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign_payment(order_id, payment_id), signature)

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        return hmac.compare_digest(self.sign_webhook(body), signature)
