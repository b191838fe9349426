"""Domain models and business logic."""

from tldw.domain.enums import (
    AIProvider,
    BillingCycle,
    Plan,
    Sentiment,
    SubscriptionStatus,
    SummaryLength,
    TransactionType,
    TranscriptSource,
    UserRole,
)
from tldw.domain.models import (
    Chapter,
    GeneratedBy,
    GeneratedSummary,
    SummaryRequest,
    SummaryResult,
    Transcript,
    TranscriptResult,
    TranscriptSegment,
    VideoDescriptor,
)

__all__ = [
    "AIProvider",
    "BillingCycle",
    "Chapter",
    "GeneratedBy",
    "GeneratedSummary",
    "Plan",
    "Sentiment",
    "SubscriptionStatus",
    "SummaryLength",
    "SummaryRequest",
    "SummaryResult",
    "TransactionType",
    "Transcript",
    "TranscriptResult",
    "TranscriptSegment",
    "TranscriptSource",
    "UserRole",
    "VideoDescriptor",
]
