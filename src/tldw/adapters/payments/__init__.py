"""Payment gateway adapters."""

from tldw.adapters.payments.base import GatewayOrder, GatewayPayment, PaymentGateway
from tldw.adapters.payments.razorpay import RazorpayGateway
from tldw.adapters.payments.stub import StubPaymentGateway
from tldw.config import settings


def get_payment_gateway() -> PaymentGateway:
    """Get the configured payment gateway."""
    if settings.payment_provider == "razorpay":
        return RazorpayGateway()
    return StubPaymentGateway()


__all__ = [
    "GatewayOrder",
    "GatewayPayment",
    "PaymentGateway",
    "RazorpayGateway",
    "StubPaymentGateway",
    "get_payment_gateway",
]
