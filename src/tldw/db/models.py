"""SQLAlchemy ORM models."""

import secrets
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tldw.utils.time import ensure_utc, first_of_next_month, next_midnight, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns
LedgerId = BigInteger().with_variant(Integer(), "sqlite")


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime that always round-trips as an aware UTC datetime."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        value = ensure_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)


def _transaction_id() -> str:
    return f"txn_{secrets.token_hex(16)}"


def _summary_id() -> str:
    return secrets.token_hex(8)


def _next_credit_reset() -> datetime:
    return first_of_next_month(utcnow())


def _next_daily_reset() -> datetime:
    return next_midnight(utcnow())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Users and credit ledger
# =============================================================================


class UserModel(Base):
    """Account linked to a Google identity, with plan, credits and usage."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("credit_balance >= 0", name="ck_credit_balance_non_negative"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    google_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    picture: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Subscription
    plan: Mapped[str] = mapped_column(String(20), default="free", index=True)
    subscription_status: Mapped[str] = mapped_column(String(20), default="active")
    billing_cycle: Mapped[str | None] = mapped_column(String(20), nullable=True)
    subscription_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=False)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Credits
    credit_balance: Mapped[int] = mapped_column(Integer, default=20)
    monthly_allocation: Mapped[int] = mapped_column(Integer, default=20)
    last_credit_reset: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow)
    next_credit_reset_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_next_credit_reset, index=True
    )
    lifetime_earned: Mapped[int] = mapped_column(Integer, default=20)
    lifetime_spent: Mapped[int] = mapped_column(Integer, default=0)

    # Usage
    summaries_today: Mapped[int] = mapped_column(Integer, default=0)
    summaries_this_month: Mapped[int] = mapped_column(Integer, default=0)
    total_summaries: Mapped[int] = mapped_column(Integer, default=0)
    total_time_saved_minutes: Mapped[int] = mapped_column(Integer, default=0)
    last_summary_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    daily_reset_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_next_daily_reset)
    daily_summary_limit: Mapped[int] = mapped_column(Integer, default=30)
    video_duration_limit_seconds: Mapped[int] = mapped_column(Integer, default=1200)
    features: Mapped[dict[str, bool]] = mapped_column(JSONType, default=dict)

    # Preferences
    default_ai_provider: Mapped[str] = mapped_column(String(20), default="openai")
    default_summary_length: Mapped[str] = mapped_column(String(20), default="medium")
    notify_credit_low: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_monthly_reset: Mapped[bool] = mapped_column(Boolean, default=True)

    # Referral
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    total_referrals: Mapped[int] = mapped_column(Integer, default=0)
    total_referral_credits: Mapped[int] = mapped_column(Integer, default=0)

    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_activity: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, onupdate=utcnow)

    # Relationships
    credit_transactions: Mapped[list["CreditTransactionModel"]] = relationship(
        "CreditTransactionModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="CreditTransactionModel.id",
    )
    usage_logs: Mapped[list["UsageLogModel"]] = relationship(
        "UsageLogModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UsageLogModel.id",
    )
    referrals_made: Mapped[list["ReferralModel"]] = relationship(
        "ReferralModel",
        back_populates="referrer",
        cascade="all, delete-orphan",
        foreign_keys="ReferralModel.referrer_id",
    )
    payments: Mapped[list["PaymentModel"]] = relationship(
        "PaymentModel",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="PaymentModel.created_at",
    )

    @property
    def is_premium(self) -> bool:
        return self.plan == "pro" and self.subscription_status == "active"

    @property
    def is_free(self) -> bool:
        return self.plan == "free"

    @property
    def credit_percentage(self) -> int:
        if self.is_premium:
            return 100
        if not self.monthly_allocation:
            return 0
        return round(self.credit_balance / self.monthly_allocation * 100)


class CreditTransactionModel(Base):
    """Append-only ledger entry justifying one balance change."""

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(
        String(40), nullable=False, unique=True, default=_transaction_id
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata_", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)

    user: Mapped["UserModel"] = relationship("UserModel", back_populates="credit_transactions")


class UsageLogModel(Base):
    """One summary request, successful or not."""

    __tablename__ = "usage_logs"

    id: Mapped[int] = mapped_column(LedgerId, primary_key=True, autoincrement=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    video_id: Mapped[str] = mapped_column(String(32), nullable=False)
    ai_provider: Mapped[str | None] = mapped_column(String(20), nullable=True)
    summary_length: Mapped[str | None] = mapped_column(String(20), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    credits_used: Mapped[int] = mapped_column(Integer, default=0)
    processing_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    cached: Mapped[bool] = mapped_column(Boolean, default=False)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)

    user: Mapped["UserModel"] = relationship("UserModel", back_populates="usage_logs")


class ReferralModel(Base):
    """A referred signup credited to its referrer."""

    __tablename__ = "referrals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    referrer_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    referred_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    referred_email: Mapped[str] = mapped_column(String(320), nullable=False)
    credits_given: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("referrer_id", "referred_user_id", name="uq_referrer_referred"),
    )

    referrer: Mapped["UserModel"] = relationship(
        "UserModel", back_populates="referrals_made", foreign_keys=[referrer_id]
    )


class PaymentModel(Base):
    """Payment captured for a plan purchase."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    order_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    plan_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), default="INR")
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    user: Mapped["UserModel"] = relationship("UserModel", back_populates="payments")


# =============================================================================
# Shared video cache
# =============================================================================


class VideoModel(Base):
    """One cached YouTube video, shared across all users."""

    __tablename__ = "videos"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    video_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    video_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    channel_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    channel_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Stats
    total_views: Mapped[int] = mapped_column(Integer, default=0, index=True)
    unique_users: Mapped[int] = mapped_column(Integer, default=0)
    total_summaries_generated: Mapped[int] = mapped_column(Integer, default=0)
    cache_hits: Mapped[int] = mapped_column(Integer, default=0)
    cache_hit_rate: Mapped[float] = mapped_column(Float, default=0.0)
    by_provider: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict)
    by_length: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict)
    first_accessed: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    last_accessed: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True)

    cache_expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    is_popular: Mapped[bool] = mapped_column(Boolean, default=False)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, onupdate=utcnow)

    # Relationships
    transcript: Mapped["VideoTranscriptModel | None"] = relationship(
        "VideoTranscriptModel",
        back_populates="video",
        uselist=False,
        cascade="all, delete-orphan",
    )
    summaries: Mapped[list["VideoSummaryModel"]] = relationship(
        "VideoSummaryModel",
        back_populates="video",
        cascade="all, delete-orphan",
        order_by="VideoSummaryModel.generated_at",
    )
    accesses: Mapped[list["VideoAccessModel"]] = relationship(
        "VideoAccessModel", back_populates="video", cascade="all, delete-orphan"
    )


class VideoTranscriptModel(Base):
    """The single cached transcript of a video."""

    __tablename__ = "video_transcripts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    video_pk: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("videos.id", ondelete="CASCADE"), unique=True
    )
    full_text: Mapped[str] = mapped_column(Text, nullable=False)
    segments: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    language: Mapped[str] = mapped_column(String(16), default="en")
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    source: Mapped[str] = mapped_column(String(30), default="youtube_auto")
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    video: Mapped["VideoModel"] = relationship("VideoModel", back_populates="transcript")


class VideoSummaryModel(Base):
    """A cached summary for one (provider, length) variant of a video."""

    __tablename__ = "video_summaries"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    summary_id: Mapped[str] = mapped_column(String(16), nullable=False, default=_summary_id)
    video_pk: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("videos.id", ondelete="CASCADE"), index=True
    )
    ai_provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    length: Mapped[str] = mapped_column(String(20), nullable=False)
    language: Mapped[str] = mapped_column(String(16), default="en")
    text: Mapped[str] = mapped_column(Text, nullable=False)
    key_points: Mapped[list[str]] = mapped_column(JSONType, default=list)
    chapters: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list)
    sentiment: Mapped[str | None] = mapped_column(String(20), nullable=True)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    processing_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, default=0)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0)
    generated_by_user_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    generated_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("video_pk", "ai_provider", "length", name="uq_video_summary_variant"),
    )

    video: Mapped["VideoModel"] = relationship("VideoModel", back_populates="summaries")

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary_id": self.summary_id,
            "ai_provider": self.ai_provider,
            "model": self.model,
            "length": self.length,
            "language": self.language,
            "text": self.text,
            "key_points": list(self.key_points or []),
            "chapters": list(self.chapters or []),
            "tags": list(self.tags or []),
            "sentiment": self.sentiment,
            "word_count": self.word_count,
            "processing_time_ms": self.processing_time_ms,
            "tokens_used": self.tokens_used,
            "cost_usd": self.cost_usd,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }


class VideoAccessModel(Base):
    """Per-user access counter on a cached video."""

    __tablename__ = "video_access"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    video_pk: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("videos.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    access_count: Mapped[int] = mapped_column(Integer, default=1)
    first_access: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    last_access: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (UniqueConstraint("video_pk", "user_id", name="uq_video_access_user"),)

    video: Mapped["VideoModel"] = relationship("VideoModel", back_populates="accesses")
