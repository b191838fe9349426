"""Summary orchestration: cache lookup, credit metering and generation.

``SummaryOrchestrator.get_or_generate_summary`` is the single entry point for
summary requests. It resolves the shared video record, serves a cached
summary when the requested (provider, length) variant exists, and otherwise
generates one, charging free-plan users one credit per request either way.

Metering rules:
- A cache hit costs a free user one credit; without one the summary is not served.
- A cache miss charges the credit before generation and refunds it if
  generation fails, so each attempt has exactly one deduction and at most
  one refund.
- Pro users are never charged.

Errors never escape: every outcome is a ``SummaryResult``. A storage error
rolls back the whole request, so nothing is charged or cached.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Hashable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tldw.db.models import UserModel, VideoModel, VideoSummaryModel
from tldw.domain.enums import TransactionType
from tldw.domain.errors import InsufficientCredits, SummaryServiceError
from tldw.domain.models import GeneratedBy, SummaryRequest, SummaryResult, VideoDescriptor
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger
from tldw.services.subscriptions import AccessDecision, check_summary_access, is_metered
from tldw.services.summarizer import SummaryGenerator
from tldw.services.transcripts import TranscriptCache
from tldw.services.users import log_usage
from tldw.services.video_cache import VideoCache, video_to_dict
from tldw.utils.time import utcnow

logger = get_logger(__name__)

INSUFFICIENT_CREDITS_MESSAGE = "Insufficient credits. Upgrade to Pro for unlimited summaries."
GENERATION_FAILED_MESSAGE = "Failed to generate summary. Your credit has been refunded."
STORAGE_FAILED_MESSAGE = "Summary service is temporarily unavailable. You have not been charged."


class GenerationLocks:
    """Keyed asyncio locks, one per summary variant being generated.

    Entries are dropped once nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every orchestrator in the process
generation_locks = GenerationLocks()


def _generated_by(summary: VideoSummaryModel) -> GeneratedBy:
    return GeneratedBy(user_id=summary.generated_by_user_id, email=summary.generated_by_email)


class SummaryOrchestrator:
    """Serves summary requests against the shared video cache.

    Args:
        session: Session holding the request's single transaction.
        generator: Summary generator (AI providers).
        transcripts: Transcript cache used on a miss.
        locks: Generation lock registry; defaults to the process-wide one.
        clock: Source of the current time.
        commit: If True, commit the request's transaction before returning,
            while the generation lock is still held, so that a waiting
            request sees the new summary. Otherwise the caller commits.
    """

    def __init__(
        self,
        session: Session,
        generator: SummaryGenerator | None = None,
        transcripts: TranscriptCache | None = None,
        locks: GenerationLocks | None = None,
        clock: Callable[[], datetime] = utcnow,
        commit: bool = False,
    ) -> None:
        self.session = session
        self.videos = VideoCache(session)
        self.ledger = CreditLedger(session)
        self.generator = SummaryGenerator() if generator is None else generator
        self.transcripts = (
            TranscriptCache(session, video_cache=self.videos) if transcripts is None else transcripts
        )
        self.locks = generation_locks if locks is None else locks
        self.clock = clock
        self.commit = commit

    # ------------------------------------------------------------------
    # Read-only checks
    # ------------------------------------------------------------------

    def validate_summary_request(
        self, user: UserModel, video_duration_seconds: int | None = 0
    ) -> AccessDecision:
        """Apply any due monthly reset, then check plan, credits and duration limits."""
        self.ledger.reset_monthly(user, self.clock())
        return check_summary_access(user, video_duration_seconds)

    def check_cache(self, video_id: str, request: SummaryRequest) -> dict[str, Any] | None:
        """Return the cached variant without charging or counting a view."""
        found = self.videos.find_summary(video_id, request)
        if found is None:
            return None
        video, summary = found
        return {
            "summary": summary.to_dict(),
            "generated_by": _generated_by(summary),
            "video": video_to_dict(video),
        }

    # ------------------------------------------------------------------
    # Summary requests
    # ------------------------------------------------------------------

    async def get_or_generate_summary(
        self,
        descriptor: VideoDescriptor,
        request: SummaryRequest,
        user: UserModel,
        request_id: str | None = None,
    ) -> SummaryResult:
        """Serve a summary from the cache or generate it, metering credits."""
        started = time.monotonic()
        request_id = request_id or uuid4().hex
        now = self.clock()
        # Values to report if the transaction has to be rolled back
        balance_before = user.credit_balance
        premium_before = user.is_premium

        try:
            self.ledger.reset_monthly(user, now)
            video = self.videos.get_or_create(descriptor, now=now)
            self.videos.track_access(video, user, now=now)

            cached = self.videos.get_summary(video, request)
            if cached is not None:
                return self._serve_cached(video, cached, request, user, request_id, started)

            key = (video.video_id, *request.cache_key)
            async with self.locks.hold(key):
                # Another request may have generated it while we waited
                cached = self.videos.get_summary(video, request)
                if cached is not None:
                    return self._serve_cached(video, cached, request, user, request_id, started)
                return await self._generate(video, descriptor, request, user, request_id, started)
        except SummaryServiceError as e:
            logger.error("summary_request_failed", video_id=descriptor.video_id, error=str(e))
            self._finish()
            return SummaryResult(
                success=False,
                error=str(e),
                error_code="SUMMARY_FAILED",
                credits_remaining=user.credit_balance,
                is_premium=user.is_premium,
            )
        except SQLAlchemyError as e:
            logger.exception("summary_request_storage_failed", video_id=descriptor.video_id, error=str(e))
            self.session.rollback()
            return SummaryResult(
                success=False,
                error=STORAGE_FAILED_MESSAGE,
                error_code="STORAGE_FAILED",
                credits_remaining=balance_before,
                is_premium=premium_before,
            )

    def _charges(self, user: UserModel) -> bool:
        return is_metered(user)

    def _finish(self) -> None:
        if self.commit:
            self.session.commit()
        else:
            self.session.flush()

    def _insufficient(self, user: UserModel, error: InsufficientCredits) -> SummaryResult:
        self._finish()
        return SummaryResult(
            success=False,
            error=INSUFFICIENT_CREDITS_MESSAGE,
            error_code="INSUFFICIENT_CREDITS",
            credits_remaining=error.balance,
            is_premium=user.is_premium,
        )

    def _serve_cached(
        self,
        video: VideoModel,
        summary: VideoSummaryModel,
        request: SummaryRequest,
        user: UserModel,
        request_id: str,
        started: float,
    ) -> SummaryResult:
        charges = self._charges(user)
        if charges:
            try:
                self.ledger.deduct(
                    user,
                    1,
                    "Video summary (cached)",
                    {
                        "request_id": request_id,
                        "video_id": video.video_id,
                        "cached": True,
                        "ai_provider": str(request.ai_provider),
                        "length": str(request.length),
                    },
                )
            except InsufficientCredits as e:
                return self._insufficient(user, e)

        self.videos.record_cache_hit(video)
        log_usage(
            self.session,
            user,
            video.video_id,
            ai_provider=summary.ai_provider,
            summary_length=summary.length,
            model=summary.model,
            credits_used=1 if charges else 0,
            processing_time_ms=0,
            cached=True,
            success=True,
            video_duration_seconds=video.duration_seconds,
            now=self.clock(),
        )
        self._finish()

        logger.info(
            "summary_cache_hit",
            video_id=video.video_id,
            ai_provider=summary.ai_provider,
            length=summary.length,
            user_id=str(user.id),
            request_id=request_id,
        )
        return SummaryResult(
            success=True,
            cached=True,
            summary=summary.to_dict(),
            generated_by=_generated_by(summary),
            video=video_to_dict(video),
            credits_remaining=user.credit_balance,
            is_premium=user.is_premium,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    async def _generate(
        self,
        video: VideoModel,
        descriptor: VideoDescriptor,
        request: SummaryRequest,
        user: UserModel,
        request_id: str,
        started: float,
    ) -> SummaryResult:
        charges = self._charges(user)
        metadata = {
            "request_id": request_id,
            "video_id": video.video_id,
            "ai_provider": str(request.ai_provider),
            "length": str(request.length),
        }

        if charges:
            try:
                self.ledger.deduct(user, 1, "Video summary generated", metadata)
            except InsufficientCredits as e:
                return self._insufficient(user, e)

        logger.info(
            "summary_cache_miss",
            video_id=video.video_id,
            ai_provider=str(request.ai_provider),
            length=str(request.length),
            user_id=str(user.id),
            request_id=request_id,
        )

        generation_started = time.monotonic()
        try:
            transcript_result = await self.transcripts.get_or_fetch(video, now=self.clock())
            generated = await self.generator.generate(
                transcript_result.transcript,
                request,
                title=video.title,
                duration_seconds=video.duration_seconds or descriptor.duration_seconds,
            )
        except Exception as e:
            return self._fail_generation(video, request, user, charges, metadata, e, generation_started)

        processing_time_ms = int((time.monotonic() - generation_started) * 1000)
        summary, created = self.videos.add_summary(
            video, request, generated, user, processing_time_ms, now=self.clock()
        )
        if not created:
            # Lost the insert race to another process; theirs is served as a hit
            self.videos.record_cache_hit(video)

        log_usage(
            self.session,
            user,
            video.video_id,
            ai_provider=str(request.ai_provider),
            summary_length=str(request.length),
            model=summary.model,
            credits_used=1 if charges else 0,
            processing_time_ms=processing_time_ms,
            cached=not created,
            success=True,
            video_duration_seconds=video.duration_seconds,
            now=self.clock(),
        )
        self._finish()

        logger.info(
            "summary_generated",
            video_id=video.video_id,
            ai_provider=str(request.ai_provider),
            length=str(request.length),
            processing_time_ms=processing_time_ms,
            request_id=request_id,
        )
        return SummaryResult(
            success=True,
            cached=not created,
            summary=summary.to_dict(),
            generated_by=_generated_by(summary),
            video=video_to_dict(video),
            credits_remaining=user.credit_balance,
            is_premium=user.is_premium,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    def _fail_generation(
        self,
        video: VideoModel,
        request: SummaryRequest,
        user: UserModel,
        charges: bool,
        metadata: dict[str, Any],
        error: Exception,
        generation_started: float,
    ) -> SummaryResult:
        if charges:
            self.ledger.add(
                user,
                1,
                TransactionType.REFUND,
                "Summary generation failed",
                {**metadata, "error": str(error)},
            )

        log_usage(
            self.session,
            user,
            video.video_id,
            ai_provider=str(request.ai_provider),
            summary_length=str(request.length),
            model=request.model,
            credits_used=0,
            processing_time_ms=int((time.monotonic() - generation_started) * 1000),
            cached=False,
            success=False,
            error_message=str(error),
            now=self.clock(),
        )
        self._finish()

        logger.warning(
            "summary_generation_failed",
            video_id=video.video_id,
            ai_provider=str(request.ai_provider),
            length=str(request.length),
            error=str(error),
            error_type=type(error).__name__,
            refunded=charges,
            request_id=metadata["request_id"],
        )
        return SummaryResult(
            success=False,
            error=GENERATION_FAILED_MESSAGE,
            error_code="GENERATION_FAILED",
            credits_remaining=user.credit_balance,
            is_premium=user.is_premium,
        )
