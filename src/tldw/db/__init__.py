"""Database layer."""

from tldw.db.models import (
    Base,
    CreditTransactionModel,
    PaymentModel,
    ReferralModel,
    UsageLogModel,
    UserModel,
    VideoAccessModel,
    VideoModel,
    VideoSummaryModel,
    VideoTranscriptModel,
)
from tldw.db.session import get_session, get_session_context, init_db

__all__ = [
    "Base",
    "get_session",
    "get_session_context",
    "init_db",
    # Models
    "CreditTransactionModel",
    "PaymentModel",
    "ReferralModel",
    "UsageLogModel",
    "UserModel",
    "VideoAccessModel",
    "VideoModel",
    "VideoSummaryModel",
    "VideoTranscriptModel",
]
