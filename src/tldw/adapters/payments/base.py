"""Base interface for payment gateways."""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GatewayOrder:
    """An order created at the gateway, ready for client-side checkout."""

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    notes: dict[str, str] = field(default_factory=dict)


@dataclass
class GatewayPayment:
    """Payment details as reported by the gateway."""

    id: str
    order_id: str | None
    amount: int
    currency: str
    status: str
    method: str | None = None
    notes: dict[str, Any] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return self.status in ("captured", "authorized")


def hmac_sha256_hex(secret: str, message: str | bytes) -> str:
    """Hex HMAC-SHA256 digest, as used by Razorpay signatures."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentGateway(ABC):
    """Abstract base class for payment gateways.

    Implementations:
    - RazorpayGateway: Razorpay orders and payments API
    - StubPaymentGateway: In-memory gateway for development and tests
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway name identifier."""
        ...

    @property
    @abstractmethod
    def key_id(self) -> str | None:
        """Public key handed to the checkout widget."""
        ...

    @abstractmethod
    def create_order(
        self, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> GatewayOrder:
        """Create an order for ``amount`` in the currency's minor unit."""
        ...

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """Look up a payment by id."""
        ...

    @abstractmethod
    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature over ``order_id|payment_id``."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        """Check a webhook signature over the raw request body."""
        ...
