"""Application services."""

from tldw.services.auth import TokenService
from tldw.services.billing import PLANS, BillingService
from tldw.services.ledger import CreditLedger
from tldw.services.maintenance import JobRunResult, MaintenanceScheduler
from tldw.services.notifications import Notification, NotificationService
from tldw.services.orchestrator import SummaryOrchestrator
from tldw.services.referrals import ReferralService
from tldw.services.subscriptions import SubscriptionService
from tldw.services.summarizer import SummaryGenerator
from tldw.services.transcripts import TranscriptCache
from tldw.services.video_cache import VideoCache

__all__ = [
    "BillingService",
    "CreditLedger",
    "JobRunResult",
    "MaintenanceScheduler",
    "Notification",
    "NotificationService",
    "PLANS",
    "ReferralService",
    "SubscriptionService",
    "SummaryGenerator",
    "SummaryOrchestrator",
    "TokenService",
    "TranscriptCache",
    "VideoCache",
]
