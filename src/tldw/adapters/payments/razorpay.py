"""Razorpay payment gateway."""

from typing import Any

from tldw.adapters.payments.base import GatewayOrder, GatewayPayment, PaymentGateway
from tldw.config import settings
from tldw.logging import get_logger

logger = get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    """Razorpay orders, payments and signature checks via the razorpay SDK."""

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        self._key_id = key_id or settings.razorpay_key_id
        self.key_secret = key_secret or settings.razorpay_key_secret
        self.webhook_secret = webhook_secret or settings.razorpay_webhook_secret
        self._client: Any = None

        if not self._key_id or not self.key_secret:
            logger.warning("Razorpay credentials not configured")

    @property
    def name(self) -> str:
        return "razorpay"

    @property
    def key_id(self) -> str | None:
        return self._key_id

    @property
    def client(self) -> Any:
        """Get or create the Razorpay client."""
        if self._client is None:
            if not self._key_id or not self.key_secret:
                raise ValueError("Razorpay credentials not configured")
            import razorpay

            self._client = razorpay.Client(auth=(self._key_id, self.key_secret))
        return self._client

    def create_order(
        self, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder:
        order = self.client.order.create(
            {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes}
        )
        logger.info("razorpay_order_created", order_id=order["id"], amount=amount)
        return GatewayOrder(
            id=order["id"],
            amount=order["amount"],
            currency=order["currency"],
            receipt=order.get("receipt"),
            notes=dict(order.get("notes") or {}),
        )

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        payment = self.client.payment.fetch(payment_id)
        return GatewayPayment(
            id=payment["id"],
            order_id=payment.get("order_id"),
            amount=payment["amount"],
            currency=payment["currency"],
            status=payment["status"],
            method=payment.get("method"),
            notes=dict(payment.get("notes") or {}),
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        import razorpay

        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        import razorpay

        if not self.webhook_secret:
            logger.warning("razorpay_webhook_secret_missing")
            return False
        try:
            self.client.utility.verify_webhook_signature(
                body.decode("utf-8"), signature, self.webhook_secret
            )
        except razorpay.errors.SignatureVerificationError:
            return False
        return True
