"""Admin endpoints: cache statistics, maintenance jobs, credit grants."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from tldw.api.deps import AdminUserDep, ClockDep, MaintenanceSchedulerDep, SessionDep
from tldw.domain.enums import TransactionType
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger
from tldw.services.users import get_user, plan_counts
from tldw.services.video_cache import VideoCache, video_to_dict

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = get_logger(__name__)


class JobInfo(BaseModel):
    name: str
    frequency: str
    description: str
    schedule: dict[str, Any]


class JobRunResponse(BaseModel):
    name: str
    success: bool
    started_at: str
    finished_at: str
    duration_ms: int
    stats: dict[str, Any]
    error: str | None = None


class GrantCreditsRequest(BaseModel):
    amount: int = Field(..., gt=0, le=10_000)
    reason: str = Field(default="Admin credit grant", max_length=200)


def _video_listing(videos: list[Any]) -> list[dict[str, Any]]:
    return [
        {**video_to_dict(video), "last_accessed": video.last_accessed.isoformat()}
        for video in videos
    ]


@router.get("/cache-stats", summary="Cache statistics")
async def cache_stats(admin: AdminUserDep, session: SessionDep) -> dict[str, Any]:
    return {**VideoCache(session).statistics(), "users_by_plan": plan_counts(session)}


@router.get("/videos/popular", summary="Most viewed cached videos")
async def popular_videos(
    admin: AdminUserDep,
    session: SessionDep,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, Any]:
    return {"videos": _video_listing(VideoCache(session).popular(limit))}


@router.get("/videos/trending", summary="Most viewed videos of the last 7 days")
async def trending_videos(
    admin: AdminUserDep,
    session: SessionDep,
    clock: ClockDep,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, Any]:
    return {"videos": _video_listing(VideoCache(session).trending(limit, now=clock()))}


@router.get("/jobs", response_model=list[JobInfo], summary="List maintenance jobs")
async def list_jobs(admin: AdminUserDep, scheduler: MaintenanceSchedulerDep) -> list[JobInfo]:
    return [
        JobInfo(
            name=job.name,
            frequency=str(job.schedule.frequency),
            description=job.description,
            schedule=job.schedule.crontab_kwargs(),
        )
        for job in scheduler.jobs
    ]


@router.post("/jobs/run-all", response_model=list[JobRunResponse], summary="Run every maintenance job")
async def run_all_jobs(admin: AdminUserDep, scheduler: MaintenanceSchedulerDep) -> list[JobRunResponse]:
    logger.info("admin_jobs_triggered", admin_id=str(admin.id), job="all")
    return [JobRunResponse(**result.to_dict()) for result in scheduler.run_all()]


@router.post("/jobs/{name}/run", response_model=JobRunResponse, summary="Run one maintenance job")
async def run_job(name: str, admin: AdminUserDep, scheduler: MaintenanceSchedulerDep) -> JobRunResponse:
    if name not in scheduler.job_names:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": f"Unknown maintenance job: {name}", "code": "NOT_FOUND"},
        )
    logger.info("admin_jobs_triggered", admin_id=str(admin.id), job=name)
    return JobRunResponse(**scheduler.run(name).to_dict())


@router.post("/users/{user_id}/credits", summary="Grant credits to a user")
async def grant_credits(
    user_id: UUID,
    request: GrantCreditsRequest,
    admin: AdminUserDep,
    session: SessionDep,
) -> dict[str, Any]:
    user = get_user(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "User not found", "code": "NOT_FOUND"},
        )

    entry = CreditLedger(session).add(
        user,
        request.amount,
        TransactionType.ADMIN_ADJUSTMENT,
        request.reason,
        {"granted_by": str(admin.id)},
    )
    session.commit()
    logger.info("admin_credits_granted", admin_id=str(admin.id), user_id=str(user.id), amount=request.amount)
    return {
        "user_id": str(user.id),
        "balance": user.credit_balance,
        "transaction_id": entry.transaction_id,
    }
