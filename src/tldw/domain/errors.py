"""Domain exceptions."""


class SummaryServiceError(Exception):
    """Base class for errors raised by the summary service."""

    pass


class InsufficientCredits(SummaryServiceError):
    """Raised when a deduction would take a balance below zero."""

    def __init__(self, balance: int, required: int = 1) -> None:
        self.balance = balance
        self.required = required
        super().__init__("Insufficient credits")


class InvalidReferral(SummaryServiceError):
    """Raised for unknown codes, self-referrals and repeat referrals."""

    pass


class TranscriptFetchFailed(SummaryServiceError):
    """Raised when no transcript could be obtained for a video."""

    pass


class AIGenerationFailed(SummaryServiceError):
    """Raised when the AI provider call fails or returns unusable output."""

    pass


class PaymentVerificationFailed(SummaryServiceError):
    """Raised when a payment or webhook signature does not verify."""

    pass


class AuthenticationError(SummaryServiceError):
    """Base class for request authentication failures."""

    code = "AUTH_FAILED"
    message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class Unauthenticated(AuthenticationError):
    """No token was supplied."""

    code = "NO_TOKEN"
    message = "Not authenticated"


class TokenExpired(AuthenticationError):
    """The token's expiry has passed."""

    code = "TOKEN_EXPIRED"
    message = "Token expired"


class InvalidToken(AuthenticationError):
    """The token is malformed or its signature does not verify."""

    code = "INVALID_TOKEN"
    message = "Invalid token"


class InvalidUser(AuthenticationError):
    """The token is valid but its user is unknown or inactive."""

    code = "INVALID_USER"
    message = "User not found or inactive"
