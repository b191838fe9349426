"""Summary endpoints used by the browser extension."""

from dataclasses import asdict
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tldw.api.deps import CurrentUserDep, OrchestratorDep
from tldw.domain.enums import AIProvider, SummaryLength
from tldw.domain.models import SummaryRequest, VideoDescriptor
from tldw.logging import get_logger
from tldw.services.orchestrator import INSUFFICIENT_CREDITS_MESSAGE

router = APIRouter(prefix="/summaries", tags=["Summaries"])
logger = get_logger(__name__)

VIDEO_ID_PATTERN = r"^[A-Za-z0-9_-]{6,32}$"


class CheckCacheRequest(BaseModel):
    video_id: str = Field(..., pattern=VIDEO_ID_PATTERN)
    ai_provider: AIProvider = AIProvider.OPENAI
    length: SummaryLength = SummaryLength.MEDIUM


class GeneratedByResponse(BaseModel):
    user_id: UUID | None = None
    email: str | None = None


class CheckCacheResponse(BaseModel):
    cached: bool
    summary: dict[str, Any] | None = None
    generated_by: GeneratedByResponse | None = None
    video: dict[str, Any] | None = None


class ValidateRequest(BaseModel):
    video_duration_seconds: int | None = Field(default=0, ge=0)


class ValidateResponse(BaseModel):
    allowed: bool
    reason: str
    is_premium: bool
    credits_remaining: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class GenerateSummaryRequest(BaseModel):
    """Summary request from the extension."""

    video_id: str = Field(..., pattern=VIDEO_ID_PATTERN, description="YouTube video id")
    title: str | None = None
    video_url: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    duration_seconds: int | None = Field(default=None, ge=0)
    thumbnail_url: str | None = None
    published_at: datetime | None = None
    ai_provider: AIProvider | None = Field(default=None, description="Defaults to the user's preference")
    length: SummaryLength | None = Field(default=None, description="Defaults to the user's preference")
    model: str | None = None


class SummaryResponse(BaseModel):
    success: bool
    cached: bool = False
    summary: dict[str, Any] | None = None
    generated_by: GeneratedByResponse | None = None
    video: dict[str, Any] | None = None
    credits_remaining: int | None = None
    is_premium: bool = False
    processing_time_ms: int = 0
    error: str | None = None
    error_code: str | None = None


@router.post(
    "/check-cache",
    response_model=CheckCacheResponse,
    summary="Check for a cached summary",
    description="Look up a cached summary variant without spending a credit.",
)
async def check_cache(
    request: CheckCacheRequest,
    user: CurrentUserDep,
    orchestrator: OrchestratorDep,
) -> CheckCacheResponse:
    found = orchestrator.check_cache(
        request.video_id, SummaryRequest(ai_provider=request.ai_provider, length=request.length)
    )
    if found is None:
        return CheckCacheResponse(cached=False)
    return CheckCacheResponse(
        cached=True,
        summary=found["summary"],
        generated_by=GeneratedByResponse(**asdict(found["generated_by"])),
        video=found["video"],
    )


@router.post(
    "/validate",
    response_model=ValidateResponse,
    summary="Pre-check a summary request",
)
async def validate_request(
    request: ValidateRequest,
    user: CurrentUserDep,
    orchestrator: OrchestratorDep,
) -> ValidateResponse:
    decision = orchestrator.validate_summary_request(user, request.video_duration_seconds)
    orchestrator.session.commit()
    return ValidateResponse(**asdict(decision))


@router.post(
    "/generate",
    response_model=SummaryResponse,
    summary="Get or generate a summary",
    description=(
        "Serve the cached summary for this (provider, length) variant or generate it. "
        "Free users spend one credit per request; failed generations are refunded."
    ),
)
async def generate_summary(
    request: GenerateSummaryRequest,
    http_request: Request,
    user: CurrentUserDep,
    orchestrator: OrchestratorDep,
) -> Any:
    decision = orchestrator.validate_summary_request(user, request.duration_seconds)
    if not decision.allowed:
        orchestrator.session.commit()
        if user.credit_balance < 1:
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail={
                    "error": INSUFFICIENT_CREDITS_MESSAGE,
                    "code": "INSUFFICIENT_CREDITS",
                    "credits_remaining": user.credit_balance,
                    "upgrade_url": "/pricing",
                    **decision.details,
                },
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": decision.reason, "code": "DURATION_LIMIT", **decision.details},
        )

    summary_request = SummaryRequest(
        ai_provider=request.ai_provider or AIProvider(user.default_ai_provider),
        length=request.length or SummaryLength(user.default_summary_length),
        model=request.model,
    )
    descriptor = VideoDescriptor(
        video_id=request.video_id,
        title=request.title,
        video_url=request.video_url,
        channel_name=request.channel_name,
        channel_id=request.channel_id,
        duration_seconds=request.duration_seconds,
        thumbnail_url=request.thumbnail_url,
        published_at=request.published_at,
    )

    result = await orchestrator.get_or_generate_summary(
        descriptor,
        summary_request,
        user,
        request_id=http_request.state.request_id,
    )
    body = SummaryResponse(**asdict(result))
    if result.success:
        return body

    status_code = (
        status.HTTP_402_PAYMENT_REQUIRED
        if result.error_code == "INSUFFICIENT_CREDITS"
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
