"""Domain enumerations."""

from enum import StrEnum


class Plan(StrEnum):
    """Subscription plan."""

    FREE = "free"
    PRO = "pro"


class SubscriptionStatus(StrEnum):
    """Status of a user's subscription."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAST_DUE = "past_due"


class BillingCycle(StrEnum):
    """Billing period for paid plans."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class UserRole(StrEnum):
    """Authorization role."""

    USER = "user"
    ADMIN = "admin"


class AIProvider(StrEnum):
    """AI providers a summary can be generated with."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class SummaryLength(StrEnum):
    """Requested summary length."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def sentence_hint(self) -> str:
        """Target size handed to the AI provider."""
        return {
            SummaryLength.SHORT: "2-3 sentences",
            SummaryLength.MEDIUM: "5-7 sentences",
            SummaryLength.LONG: "10-15 sentences",
        }[self]


class TranscriptSource(StrEnum):
    """Where a transcript came from."""

    YOUTUBE_AUTO = "youtube_auto"
    YOUTUBE_MANUAL = "youtube_manual"
    YOUTUBE_GENERATED = "youtube_generated"

    @classmethod
    def from_external(cls, value: str | None) -> "TranscriptSource":
        """Map a transcript service's source label onto a known source."""
        if not value:
            return cls.YOUTUBE_AUTO
        try:
            return cls(value)
        except ValueError:
            lowered = value.lower()
            if "manual" in lowered:
                return cls.YOUTUBE_MANUAL
            if "generated" in lowered:
                return cls.YOUTUBE_GENERATED
            return cls.YOUTUBE_AUTO


class TransactionType(StrEnum):
    """Credit ledger entry types."""

    EARNED = "earned"
    SPENT = "spent"
    REFUND = "refund"
    BONUS = "bonus"
    PURCHASE = "purchase"
    EXPIRED = "expired"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    REFERRAL = "referral"
    MONTHLY_RESET = "monthly_reset"


class Sentiment(StrEnum):
    """Overall tone of a summarized video."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    MIXED = "mixed"


class JobFrequency(StrEnum):
    """How often a maintenance job is scheduled."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
