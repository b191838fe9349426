"""User accounts: sign-in, usage tracking and the dashboard view."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import UsageLogModel, UserModel
from tldw.domain.enums import AIProvider, Plan, SubscriptionStatus, SummaryLength, UserRole
from tldw.domain.errors import InvalidReferral
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger
from tldw.services.referrals import ReferralService
from tldw.services.subscriptions import features_for
from tldw.utils.time import ensure_utc, first_of_next_month, next_midnight, utcnow

logger = get_logger(__name__)


@dataclass
class OAuthProfile:
    """Verified Google profile handed over by the sign-in flow."""

    google_id: str
    email: str
    name: str
    picture: str | None = None


def get_user(session: Session, user_id: UUID) -> UserModel | None:
    return session.get(UserModel, user_id)


def get_user_by_email(session: Session, email: str) -> UserModel | None:
    return session.execute(
        select(UserModel).where(UserModel.email == email.strip().lower())
    ).scalar_one_or_none()


def create_user(
    session: Session,
    google_id: str,
    email: str,
    name: str,
    picture: str | None = None,
    role: UserRole = UserRole.USER,
    now: datetime | None = None,
) -> UserModel:
    """Create a free-plan user with the starting allocation and a referral code.

    Args:
        session: Database session.
        google_id: Google account subject id.
        email: Email address; stored lower-cased.
        name: Display name.
        picture: Avatar URL.
        role: Authorization role.
        now: Creation time (defaults to the current time).

    Returns:
        The new user, flushed so it has an id.
    """
    now = ensure_utc(now or utcnow())
    allocation = settings.free_monthly_credits

    user = UserModel(
        id=uuid4(),
        google_id=google_id,
        email=email.strip().lower(),
        name=name,
        picture=picture,
        role=UserRole(role).value,
        is_active=True,
        plan=Plan.FREE.value,
        subscription_status=SubscriptionStatus.ACTIVE.value,
        auto_renew=False,
        cancel_at_period_end=False,
        credit_balance=allocation,
        monthly_allocation=allocation,
        last_credit_reset=now,
        next_credit_reset_at=first_of_next_month(now),
        lifetime_earned=allocation,
        lifetime_spent=0,
        summaries_today=0,
        summaries_this_month=0,
        total_summaries=0,
        total_time_saved_minutes=0,
        daily_reset_at=next_midnight(now),
        daily_summary_limit=settings.free_daily_summary_limit,
        video_duration_limit_seconds=settings.free_video_duration_limit_seconds,
        features=features_for(Plan.FREE),
        default_ai_provider=AIProvider.OPENAI.value,
        default_summary_length=SummaryLength.MEDIUM.value,
        notify_credit_low=True,
        notify_monthly_reset=True,
        total_referrals=0,
        total_referral_credits=0,
        last_login=now,
        last_activity=now,
        created_at=now,
    )
    session.add(user)
    ReferralService(session).ensure_referral_code(user)
    session.flush()

    logger.info("user_created", user_id=str(user.id), email=user.email)
    return user


def get_or_create_oauth_user(
    session: Session,
    profile: OAuthProfile,
    referral_code: str | None = None,
    now: datetime | None = None,
) -> tuple[UserModel, bool]:
    """Find the user for a Google profile, creating them on first sign-in.

    A referral code only counts for newly created users. An invalid code is
    logged and otherwise ignored; sign-in still succeeds.

    Returns:
        The user and whether it was created by this call.
    """
    now = ensure_utc(now or utcnow())
    user = session.execute(
        select(UserModel).where(UserModel.google_id == profile.google_id)
    ).scalar_one_or_none()

    if user is None:
        # Same email signed in with a different Google subject: relink
        user = get_user_by_email(session, profile.email)
        if user is not None:
            user.google_id = profile.google_id

    if user is not None:
        user.last_login = now
        user.last_activity = now
        if profile.picture:
            user.picture = profile.picture
        ReferralService(session).ensure_referral_code(user)
        logger.info("user_signed_in", user_id=str(user.id))
        return user, False

    user = create_user(
        session,
        google_id=profile.google_id,
        email=profile.email,
        name=profile.name,
        picture=profile.picture,
        now=now,
    )

    if referral_code:
        try:
            ReferralService(session).process_referral(user, referral_code)
        except InvalidReferral as e:
            logger.warning(
                "referral_rejected",
                user_id=str(user.id),
                referral_code=referral_code,
                reason=str(e),
            )

    return user, True


def plan_counts(session: Session) -> dict[str, int]:
    """Active users per plan."""
    rows = session.execute(
        select(UserModel.plan, func.count(UserModel.id))
        .where(UserModel.is_active.is_(True))
        .group_by(UserModel.plan)
    ).all()
    counts = {plan.value: 0 for plan in Plan}
    counts.update({plan: int(count) for plan, count in rows})
    return counts


def reset_daily_usage_if_due(user: UserModel, now: datetime | None = None) -> bool:
    """Zero ``summaries_today`` once the daily boundary has passed."""
    now = ensure_utc(now or utcnow())
    if user.daily_reset_at is not None and now < ensure_utc(user.daily_reset_at):
        return False
    user.summaries_today = 0
    user.daily_reset_at = next_midnight(now)
    return True


def log_usage(
    session: Session,
    user: UserModel,
    video_id: str,
    ai_provider: str | None = None,
    summary_length: str | None = None,
    model: str | None = None,
    credits_used: int = 0,
    processing_time_ms: int = 0,
    cached: bool = False,
    success: bool = True,
    error_message: str | None = None,
    video_duration_seconds: int | None = None,
    now: datetime | None = None,
) -> UsageLogModel:
    """Append a usage log entry; successful requests also bump the usage counters."""
    now = ensure_utc(now or utcnow())
    entry = UsageLogModel(
        user_id=user.id,
        video_id=video_id,
        ai_provider=ai_provider,
        summary_length=summary_length,
        model=model,
        credits_used=credits_used,
        processing_time_ms=processing_time_ms,
        cached=cached,
        success=success,
        error_message=error_message,
        created_at=now,
    )
    session.add(entry)

    if success:
        reset_daily_usage_if_due(user, now)
        user.summaries_today += 1
        user.summaries_this_month += 1
        user.total_summaries += 1
        user.last_summary_at = now
        if video_duration_seconds:
            user.total_time_saved_minutes += video_duration_seconds // 60
    user.last_activity = now

    return entry


def update_preferences(
    user: UserModel,
    default_ai_provider: AIProvider | None = None,
    default_summary_length: SummaryLength | None = None,
    notify_credit_low: bool | None = None,
    notify_monthly_reset: bool | None = None,
) -> None:
    if default_ai_provider is not None:
        user.default_ai_provider = AIProvider(default_ai_provider).value
    if default_summary_length is not None:
        user.default_summary_length = SummaryLength(default_summary_length).value
    if notify_credit_low is not None:
        user.notify_credit_low = notify_credit_low
    if notify_monthly_reset is not None:
        user.notify_monthly_reset = notify_monthly_reset


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_dashboard(session: Session, user: UserModel, now: datetime | None = None) -> dict[str, Any]:
    """Everything the dashboard page shows about one user."""
    now = ensure_utc(now or utcnow())
    CreditLedger(session).reset_monthly(user, now)
    reset_daily_usage_if_due(user, now)
    referral_code = ReferralService(session).ensure_referral_code(user)
    is_premium = user.is_premium

    if is_premium:
        credits: dict[str, Any] = {
            "status": "unlimited",
            "message": "Premium users have unlimited summaries",
        }
        limits: dict[str, Any] = {"daily_summaries": "unlimited", "video_duration": "unlimited"}
    else:
        credits = {
            "balance": user.credit_balance,
            "monthly_allocation": user.monthly_allocation,
            "next_reset": _iso(user.next_credit_reset_at),
            "lifetime_earned": user.lifetime_earned,
            "lifetime_spent": user.lifetime_spent,
            "percentage": user.credit_percentage,
        }
        limits = {
            "daily_summaries": user.daily_summary_limit,
            "daily_remaining": max(user.daily_summary_limit - user.summaries_today, 0),
            "video_duration_minutes": user.video_duration_limit_seconds // 60,
        }

    return {
        "user": {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "picture": user.picture,
            "role": user.role,
        },
        "subscription": {
            "plan": user.plan,
            "status": user.subscription_status,
            "is_premium": is_premium,
            "billing_cycle": user.billing_cycle,
            "current_period_end": _iso(user.current_period_end),
            "cancel_at_period_end": user.cancel_at_period_end,
        },
        "credits": credits,
        "usage": {
            "summaries_today": user.summaries_today,
            "summaries_this_month": user.summaries_this_month,
            "total_summaries": user.total_summaries,
            "time_saved_minutes": user.total_time_saved_minutes,
            "limits": limits,
        },
        "referral": {
            "code": referral_code,
            "total_referrals": user.total_referrals,
            "credits_earned": user.total_referral_credits,
        },
        "features": dict(user.features or {}),
        "preferences": {
            "default_ai_provider": user.default_ai_provider,
            "default_summary_length": user.default_summary_length,
            "notify_credit_low": user.notify_credit_low,
            "notify_monthly_reset": user.notify_monthly_reset,
        },
    }
