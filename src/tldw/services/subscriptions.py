"""Plans, feature access and subscription lifecycle."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import UserModel
from tldw.domain.enums import BillingCycle, Plan, SubscriptionStatus
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger
from tldw.utils.time import ensure_utc, utcnow

logger = get_logger(__name__)

FEATURE_NAMES = (
    "unlimited_summaries",
    "unlimited_video_length",
    "premium_ai_models",
    "export_summaries",
    "priority_support",
)


def features_for(plan: Plan | str) -> dict[str, bool]:
    """Feature flags granted by ``plan``."""
    enabled = Plan(plan) == Plan.PRO
    return {name: enabled for name in FEATURE_NAMES}


def apply_plan_limits(user: UserModel) -> None:
    """Recompute feature flags and limits from the user's current plan."""
    user.features = features_for(user.plan)
    if user.plan == Plan.PRO:
        user.video_duration_limit_seconds = settings.pro_video_duration_limit_seconds
    else:
        user.video_duration_limit_seconds = settings.free_video_duration_limit_seconds
        user.daily_summary_limit = settings.free_daily_summary_limit


def is_metered(user: UserModel) -> bool:
    """Whether summary requests cost this user credits.

    Metering follows the plan alone. A pro subscription that is past due or
    cancelled stays unmetered until the expiry job moves it back to free.
    """
    return user.plan == Plan.FREE


@dataclass
class AccessDecision:
    """Whether a user may request a summary, and why not if they can't."""

    allowed: bool
    reason: str
    is_premium: bool = False
    credits_remaining: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


def check_summary_access(user: UserModel, video_duration_seconds: int | None = 0) -> AccessDecision:
    """Pre-check a summary request against the user's plan, credits and limits."""
    if not is_metered(user):
        return AccessDecision(
            allowed=True,
            reason="Premium user - unlimited access",
            is_premium=user.is_premium,
        )

    if user.credit_balance < 1:
        return AccessDecision(
            allowed=False,
            reason="Insufficient credits. You need at least 1 credit.",
            credits_remaining=user.credit_balance,
            details={"next_reset": user.next_credit_reset_at.isoformat()},
        )

    duration = video_duration_seconds or 0
    if duration > user.video_duration_limit_seconds:
        max_minutes = user.video_duration_limit_seconds // 60
        return AccessDecision(
            allowed=False,
            reason=f"Video exceeds {max_minutes} minute limit for free users",
            credits_remaining=user.credit_balance,
            details={
                "video_duration_limit_minutes": max_minutes,
                "video_duration_minutes": duration // 60,
            },
        )

    return AccessDecision(
        allowed=True,
        reason="Access granted",
        credits_remaining=user.credit_balance,
    )


class SubscriptionService:
    """Moves users between plans and documents each change in their ledger."""

    def __init__(self, session: Session, ledger: CreditLedger | None = None) -> None:
        self.session = session
        self.ledger = CreditLedger(session) if ledger is None else ledger

    def upgrade(
        self,
        user: UserModel,
        billing_cycle: BillingCycle,
        period_days: int,
        now: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Activate (or renew) the pro plan for ``period_days`` from ``now``."""
        now = ensure_utc(now or utcnow())
        previous_plan = user.plan

        user.plan = Plan.PRO.value
        user.subscription_status = SubscriptionStatus.ACTIVE.value
        user.billing_cycle = BillingCycle(billing_cycle).value
        if previous_plan != Plan.PRO or user.subscription_started_at is None:
            user.subscription_started_at = now
        user.current_period_start = now
        user.current_period_end = now + timedelta(days=period_days)
        user.auto_renew = True
        user.cancel_at_period_end = False
        user.cancelled_at = None
        apply_plan_limits(user)

        self.ledger.record_adjustment(
            user,
            f"Subscription changed from {previous_plan} to {Plan.PRO.value}",
            {
                **(metadata or {}),
                "previous_plan": previous_plan,
                "new_plan": Plan.PRO.value,
                "billing_cycle": user.billing_cycle,
                "period_end": user.current_period_end.isoformat(),
            },
        )
        logger.info(
            "subscription_upgraded",
            user_id=str(user.id),
            previous_plan=previous_plan,
            billing_cycle=user.billing_cycle,
            period_end=user.current_period_end.isoformat(),
        )

    def cancel(self, user: UserModel, now: datetime | None = None) -> None:
        """Stop renewal; the plan stays active until the period ends."""
        now = ensure_utc(now or utcnow())
        user.cancel_at_period_end = True
        user.auto_renew = False
        user.cancelled_at = now

        self.ledger.record_adjustment(
            user,
            "Subscription cancelled - will downgrade at period end",
            {
                "cancelled_at": now.isoformat(),
                "period_end": user.current_period_end.isoformat()
                if user.current_period_end
                else None,
            },
        )
        logger.info("subscription_cancelled", user_id=str(user.id))

    def downgrade_expired(self, user: UserModel, now: datetime | None = None) -> None:
        """Return a lapsed pro user to the free plan with a fresh allocation."""
        now = ensure_utc(now or utcnow())
        previous_plan = user.plan

        user.plan = Plan.FREE.value
        user.subscription_status = SubscriptionStatus.EXPIRED.value
        user.billing_cycle = None
        user.auto_renew = False
        user.cancel_at_period_end = False
        apply_plan_limits(user)
        user.credit_balance = user.monthly_allocation

        self.ledger.record_adjustment(
            user,
            "Subscription expired - downgraded to free plan",
            {
                "previous_plan": previous_plan,
                "new_plan": Plan.FREE.value,
                "expired_at": now.isoformat(),
            },
        )
        logger.info("subscription_expired", user_id=str(user.id), previous_plan=previous_plan)
