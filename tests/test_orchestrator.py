"""Tests for summary orchestration and credit metering."""

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from tldw.db.models import UsageLogModel, VideoSummaryModel
from tldw.domain.enums import AIProvider, SummaryLength, TransactionType
from tldw.domain.models import GeneratedSummary, SummaryRequest, VideoDescriptor
from tldw.services.orchestrator import (
    GENERATION_FAILED_MESSAGE,
    INSUFFICIENT_CREDITS_MESSAGE,
    STORAGE_FAILED_MESSAGE,
    GenerationLocks,
    SummaryOrchestrator,
)
from tldw.services.transcripts import TranscriptCache
from tldw.services.video_cache import VideoCache

VIDEO = VideoDescriptor(video_id="abc123", title="How caches work", duration_seconds=600)
MEDIUM = SummaryRequest(ai_provider=AIProvider.OPENAI, length=SummaryLength.MEDIUM)


def _usage_logs(session, user) -> list[UsageLogModel]:
    return list(
        session.execute(
            select(UsageLogModel).where(UsageLogModel.user_id == user.id).order_by(UsageLogModel.id)
        ).scalars()
    )


def _summary_count(session) -> int:
    return session.execute(select(func.count(VideoSummaryModel.id))).scalar_one()


class TestCacheMissAndHit:
    @pytest.mark.asyncio
    async def test_first_request_generates_and_charges(self, session, make_user, orchestrator) -> None:
        user = make_user(email="first@example.com", credit_balance=5)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.success is True
        assert result.cached is False
        assert result.credits_remaining == 4
        assert result.is_premium is False
        assert result.summary["ai_provider"] == "openai"
        assert result.summary["length"] == "medium"
        assert result.summary["key_points"]
        assert result.generated_by.email == "first@example.com"
        assert result.video["video_id"] == "abc123"
        assert result.video["cache_stats"]["total_views"] == 1

        assert user.credit_balance == 4
        spent = user.credit_transactions[-1]
        assert spent.type == TransactionType.SPENT
        assert spent.amount == -1
        assert spent.description == "Video summary generated"

        [log] = _usage_logs(session, user)
        assert log.success is True
        assert log.cached is False
        assert log.credits_used == 1
        assert user.total_summaries == 1
        assert user.total_time_saved_minutes == 10

    @pytest.mark.asyncio
    async def test_second_user_is_served_from_cache(
        self, session, make_user, orchestrator, llm_provider
    ) -> None:
        first = make_user(email="first@example.com", credit_balance=5)
        second = make_user(email="second@example.com", credit_balance=3)
        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, first)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, second)

        assert result.success is True
        assert result.cached is True
        assert result.credits_remaining == 2
        assert result.generated_by.user_id == first.id
        assert result.generated_by.email == "first@example.com"
        assert second.credit_transactions[-1].description == "Video summary (cached)"
        assert second.credit_transactions[-1].metadata_["cached"] is True

        # One generation call in total
        assert len(llm_provider.calls) == 1
        assert _summary_count(session) == 1

        video = VideoCache(session).find("abc123")
        assert video.total_views == 2
        assert video.unique_users == 2
        assert video.cache_hits == 1
        assert video.cache_hit_rate == 50.0
        assert video.total_summaries_generated == 1

    @pytest.mark.asyncio
    async def test_repeat_request_by_same_user_is_charged_again(
        self, session, make_user, orchestrator
    ) -> None:
        user = make_user(credit_balance=5)
        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.cached is True
        assert user.credit_balance == 3
        video = VideoCache(session).find("abc123")
        assert video.total_views == 2
        assert video.unique_users == 1

    @pytest.mark.asyncio
    async def test_variants_are_looked_up_exactly(self, session, make_user, orchestrator) -> None:
        user = make_user(credit_balance=10)
        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        short = SummaryRequest(ai_provider=AIProvider.OPENAI, length=SummaryLength.SHORT)
        anthropic = SummaryRequest(ai_provider=AIProvider.ANTHROPIC, length=SummaryLength.MEDIUM)
        short_result = await orchestrator.get_or_generate_summary(VIDEO, short, user)
        anthropic_result = await orchestrator.get_or_generate_summary(VIDEO, anthropic, user)

        assert short_result.cached is False
        assert short_result.summary["length"] == "short"
        assert anthropic_result.cached is False
        assert anthropic_result.summary["ai_provider"] == "anthropic"
        assert _summary_count(session) == 3

        video = VideoCache(session).find("abc123")
        assert video.by_length == {"medium": 2, "short": 1}
        assert video.by_provider == {"openai": 2, "anthropic": 1}

    @pytest.mark.asyncio
    async def test_check_cache_is_read_only(self, session, make_user, orchestrator) -> None:
        user = make_user(credit_balance=5)
        assert orchestrator.check_cache("abc123", MEDIUM) is None

        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)
        found = orchestrator.check_cache("abc123", MEDIUM)

        assert found["summary"]["length"] == "medium"
        assert found["generated_by"].user_id == user.id
        assert user.credit_balance == 4
        assert VideoCache(session).find("abc123").total_views == 1


class TestGenerationFailure:
    @pytest.fixture
    def failing_orchestrator(self, session, failing_generator, transcript_provider, locks, clock):
        return SummaryOrchestrator(
            session,
            generator=failing_generator,
            transcripts=TranscriptCache(session, provider=transcript_provider),
            locks=locks,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_failed_generation_refunds_the_credit(
        self, session, make_user, failing_orchestrator
    ) -> None:
        user = make_user(credit_balance=4)

        result = await failing_orchestrator.get_or_generate_summary(
            VIDEO, MEDIUM, user, request_id="req-1"
        )

        assert result.success is False
        assert result.error == GENERATION_FAILED_MESSAGE
        assert result.error_code == "GENERATION_FAILED"
        assert result.credits_remaining == 4
        assert user.credit_balance == 4

        spent, refund = user.credit_transactions[-2:]
        assert spent.type == TransactionType.SPENT
        assert spent.balance_after == 3
        assert refund.type == TransactionType.REFUND
        assert refund.amount == 1
        assert refund.balance_after == 4
        assert spent.metadata_["request_id"] == refund.metadata_["request_id"] == "req-1"
        assert "provider unavailable" in refund.metadata_["error"]

        [log] = _usage_logs(session, user)
        assert log.success is False
        assert log.credits_used == 0
        assert "provider unavailable" in log.error_message
        assert user.total_summaries == 0

    @pytest.mark.asyncio
    async def test_transcript_stays_cached_after_failure(
        self, session, make_user, failing_orchestrator, orchestrator, transcript_provider
    ) -> None:
        user = make_user(credit_balance=4)
        await failing_orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        cache = VideoCache(session)
        video = cache.find("abc123")
        assert cache.get_transcript(video) is not None
        assert _summary_count(session) == 0

        # A later attempt reuses the stored transcript
        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)
        assert result.success is True
        assert transcript_provider.fetched == ["abc123"]

    @pytest.mark.asyncio
    async def test_missing_transcript_refunds(self, session, make_user, generator, locks, clock) -> None:
        from tldw.adapters.transcripts.stub import StubTranscriptProvider

        orchestrator = SummaryOrchestrator(
            session,
            generator=generator,
            transcripts=TranscriptCache(session, provider=StubTranscriptProvider(unavailable={"abc123"})),
            locks=locks,
            clock=clock,
        )
        user = make_user(credit_balance=2)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.success is False
        assert result.error_code == "GENERATION_FAILED"
        assert user.credit_balance == 2


class TestMetering:
    @pytest.mark.asyncio
    async def test_pro_users_are_never_charged(self, session, make_user, orchestrator) -> None:
        first = make_user(credit_balance=5)
        pro = make_user(plan="pro")
        balance = pro.credit_balance

        miss = await orchestrator.get_or_generate_summary(
            VIDEO, SummaryRequest(length=SummaryLength.LONG), pro
        )
        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, first)
        hit = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, pro)

        assert miss.success is True and miss.is_premium is True
        assert hit.cached is True
        assert pro.credit_balance == balance
        assert not [t for t in pro.credit_transactions if t.type == TransactionType.SPENT]
        assert [log.credits_used for log in _usage_logs(session, pro)] == [0, 0]

    @pytest.mark.asyncio
    async def test_insufficient_credits_on_miss(self, session, make_user, orchestrator, llm_provider) -> None:
        user = make_user(credit_balance=0)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.success is False
        assert result.error == INSUFFICIENT_CREDITS_MESSAGE
        assert result.error_code == "INSUFFICIENT_CREDITS"
        assert result.credits_remaining == 0
        assert llm_provider.calls == []
        assert _summary_count(session) == 0
        assert user.credit_balance == 0

    @pytest.mark.asyncio
    async def test_insufficient_credits_on_hit(self, session, make_user, orchestrator) -> None:
        first = make_user(credit_balance=5)
        broke = make_user(credit_balance=0)
        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, first)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, broke)

        assert result.success is False
        assert result.error_code == "INSUFFICIENT_CREDITS"
        assert result.summary is None
        assert VideoCache(session).find("abc123").cache_hits == 0

    @pytest.mark.asyncio
    async def test_due_monthly_reset_applies_before_charging(self, make_user, orchestrator) -> None:
        user = make_user(credit_balance=0, next_credit_reset_at=datetime(2026, 3, 1, tzinfo=UTC))

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.success is True
        assert user.credit_balance == 19
        assert user.next_credit_reset_at == datetime(2026, 4, 1, tzinfo=UTC)
        assert [t.type for t in user.credit_transactions[-2:]] == [
            TransactionType.MONTHLY_RESET,
            TransactionType.SPENT,
        ]

    def test_validate_summary_request(self, make_user, orchestrator) -> None:
        user = make_user(credit_balance=3)

        assert orchestrator.validate_summary_request(user, 600).allowed is True
        too_long = orchestrator.validate_summary_request(user, 1201)
        assert too_long.allowed is False
        assert too_long.details["video_duration_limit_minutes"] == 20

        user.credit_balance = 0
        empty = orchestrator.validate_summary_request(user, 60)
        assert empty.allowed is False
        assert empty.credits_remaining == 0


class TestGenerationLocks:
    @pytest.mark.asyncio
    async def test_waiter_is_served_the_summary_generated_meanwhile(
        self, session, make_user, orchestrator, locks, llm_provider
    ) -> None:
        first = make_user(email="first@example.com", credit_balance=5)
        second = make_user(credit_balance=5)
        cache = VideoCache(session)

        async with locks.hold(("abc123", "openai", "medium")):
            waiter = asyncio.create_task(orchestrator.get_or_generate_summary(VIDEO, MEDIUM, second))
            await asyncio.sleep(0)
            assert not waiter.done()

            video = cache.find("abc123")
            cache.add_summary(
                video,
                MEDIUM,
                GeneratedSummary(text="Summary written while the lock was held", model="gpt-4o-mini"),
                first,
                processing_time_ms=12,
            )

        result = await waiter

        assert result.cached is True
        assert result.generated_by.email == "first@example.com"
        assert second.credit_balance == 4
        assert llm_provider.calls == []
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_entries_are_released(self, make_user, orchestrator, locks) -> None:
        user = make_user(credit_balance=5)

        await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert len(locks) == 0

    def test_injected_registry_is_used_even_when_empty(self, session, generator) -> None:
        registry = GenerationLocks()

        orchestrator = SummaryOrchestrator(session, generator=generator, locks=registry)

        assert len(registry) == 0
        assert orchestrator.locks is registry

    def test_fixture_orchestrator_shares_the_fixture_registry(self, orchestrator, locks) -> None:
        assert orchestrator.locks is locks


class TestPastDueSubscription:
    """A past-due pro user stays unmetered until the expiry job downgrades them."""

    @pytest.mark.asyncio
    async def test_past_due_pro_is_allowed_and_not_charged(self, session, make_user, orchestrator) -> None:
        user = make_user(plan="pro", credit_balance=0, subscription_status="past_due")

        decision = orchestrator.validate_summary_request(user, 60)
        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert decision.allowed is True
        assert decision.is_premium is False
        assert result.success is True
        assert result.is_premium is False
        assert result.credits_remaining == 0
        assert user.credit_balance == 0
        assert not [t for t in user.credit_transactions if t.type == TransactionType.SPENT]

    def test_access_check_and_charging_agree(self, make_user, orchestrator) -> None:
        for status in ("active", "past_due", "cancelled"):
            user = make_user(plan="pro", credit_balance=0, subscription_status=status)
            assert orchestrator.validate_summary_request(user, 60).allowed is True
            assert orchestrator._charges(user) is False

        free = make_user(credit_balance=3)
        assert orchestrator.validate_summary_request(free, 60).allowed is True
        assert orchestrator._charges(free) is True


class TestStorageErrors:
    @pytest.mark.asyncio
    async def test_database_error_returns_result_and_rolls_back(
        self, session, make_user, orchestrator, monkeypatch
    ) -> None:
        user = make_user(credit_balance=5)

        def locked(*args, **kwargs):
            raise OperationalError("UPDATE videos", {}, Exception("database is locked"))

        monkeypatch.setattr(orchestrator.videos, "track_access", locked)

        result = await orchestrator.get_or_generate_summary(VIDEO, MEDIUM, user)

        assert result.success is False
        assert result.error_code == "STORAGE_FAILED"
        assert result.error == STORAGE_FAILED_MESSAGE
        assert result.credits_remaining == 5
        assert user.credit_balance == 5
        assert VideoCache(session).find("abc123") is None
        assert _usage_logs(session, user) == []
