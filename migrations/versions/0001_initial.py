"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = postgresql.JSONB()


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("google_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("picture", sa.String(2048), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        # Subscription
        sa.Column("plan", sa.String(20), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("billing_cycle", sa.String(20), nullable=True),
        sa.Column("subscription_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_renew", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        # Credits
        sa.Column("credit_balance", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("monthly_allocation", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("last_credit_reset", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_credit_reset_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("lifetime_earned", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("lifetime_spent", sa.Integer(), nullable=False, server_default="0"),
        # Usage
        sa.Column("summaries_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("summaries_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_summaries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_time_saved_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_summary_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("daily_reset_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("daily_summary_limit", sa.Integer(), nullable=False, server_default="30"),
        sa.Column(
            "video_duration_limit_seconds", sa.Integer(), nullable=False, server_default="1200"
        ),
        sa.Column("features", JSONB, nullable=False, server_default="{}"),
        # Preferences
        sa.Column("default_ai_provider", sa.String(20), nullable=False, server_default="openai"),
        sa.Column("default_summary_length", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("notify_credit_low", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notify_monthly_reset", sa.Boolean(), nullable=False, server_default=sa.true()),
        # Referrals
        sa.Column("referral_code", sa.String(32), nullable=True),
        sa.Column("total_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_referral_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("google_id"),
        sa.UniqueConstraint("referral_code"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_plan", "users", ["plan"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    # Credit ledger
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("transaction_id", sa.String(40), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata_", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index("ix_credit_transactions_type", "credit_transactions", ["type"])
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"])

    # Usage logs
    op.create_table(
        "usage_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("video_id", sa.String(32), nullable=False),
        sa.Column("ai_provider", sa.String(20), nullable=True),
        sa.Column("summary_length", sa.String(20), nullable=True),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("credits_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processing_time_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cached", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_usage_logs_user_id", "usage_logs", ["user_id"])
    op.create_index("ix_usage_logs_created_at", "usage_logs", ["created_at"])

    # Referrals
    op.create_table(
        "referrals",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("referrer_id", sa.UUID(), nullable=False),
        sa.Column("referred_user_id", sa.UUID(), nullable=False),
        sa.Column("referred_email", sa.String(320), nullable=False),
        sa.Column("credits_given", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["referrer_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["referred_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("referrer_id", "referred_user_id", name="uq_referrer_referred"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"])
    op.create_index("ix_referrals_referred_user_id", "referrals", ["referred_user_id"])

    # Payments
    op.create_table(
        "payments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("order_id", sa.String(100), nullable=False),
        sa.Column("payment_id", sa.String(100), nullable=True),
        sa.Column("plan_type", sa.String(30), nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False, server_default="INR"),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("method", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_order_id", "payments", ["order_id"])

    # Video cache
    op.create_table(
        "videos",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("video_id", sa.String(32), nullable=False),
        sa.Column("video_url", sa.String(2048), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("channel_name", sa.String(255), nullable=True),
        sa.Column("channel_id", sa.String(64), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_users", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_summaries_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cache_hits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cache_hit_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("by_provider", JSONB, nullable=False, server_default="{}"),
        sa.Column("by_length", JSONB, nullable=False, server_default="{}"),
        sa.Column("first_accessed", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_accessed", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("cache_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("video_id"),
    )
    op.create_index("ix_videos_channel_id", "videos", ["channel_id"])
    op.create_index("ix_videos_total_views", "videos", ["total_views"])
    op.create_index("ix_videos_last_accessed", "videos", ["last_accessed"])
    op.create_index("ix_videos_cache_expires_at", "videos", ["cache_expires_at"])

    op.create_table(
        "video_transcripts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("video_pk", sa.UUID(), nullable=False),
        sa.Column("full_text", sa.Text(), nullable=False),
        sa.Column("segments", JSONB, nullable=False, server_default="[]"),
        sa.Column("language", sa.String(16), nullable=False, server_default="en"),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(30), nullable=False, server_default="youtube_auto"),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("video_pk"),
        sa.ForeignKeyConstraint(["video_pk"], ["videos.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "video_summaries",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("summary_id", sa.String(16), nullable=False),
        sa.Column("video_pk", sa.UUID(), nullable=False),
        sa.Column("ai_provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("length", sa.String(20), nullable=False),
        sa.Column("language", sa.String(16), nullable=False, server_default="en"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("key_points", JSONB, nullable=False, server_default="[]"),
        sa.Column("chapters", JSONB, nullable=False, server_default="[]"),
        sa.Column("tags", JSONB, nullable=False, server_default="[]"),
        sa.Column("sentiment", sa.String(20), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processing_time_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_usd", sa.Float(), nullable=False, server_default="0"),
        sa.Column("generated_by_user_id", sa.UUID(), nullable=True),
        sa.Column("generated_by_email", sa.String(320), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["video_pk"], ["videos.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["generated_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("video_pk", "ai_provider", "length", name="uq_video_summary_variant"),
    )
    op.create_index("ix_video_summaries_video_pk", "video_summaries", ["video_pk"])

    op.create_table(
        "video_access",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("video_pk", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("user_email", sa.String(320), nullable=True),
        sa.Column("access_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("first_access", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_access", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["video_pk"], ["videos.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("video_pk", "user_id", name="uq_video_access_user"),
    )
    op.create_index("ix_video_access_video_pk", "video_access", ["video_pk"])
    op.create_index("ix_video_access_user_id", "video_access", ["user_id"])


def downgrade() -> None:
    op.drop_table("video_access")
    op.drop_table("video_summaries")
    op.drop_table("video_transcripts")
    op.drop_table("videos")
    op.drop_table("payments")
    op.drop_table("referrals")
    op.drop_table("usage_logs")
    op.drop_table("credit_transactions")
    op.drop_table("users")
