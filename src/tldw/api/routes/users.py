"""Dashboard endpoints for the signed-in user."""

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel
from sqlalchemy import func, select

from tldw.api.deps import ClockDep, CurrentUserDep, SessionDep
from tldw.db.models import CreditTransactionModel, UsageLogModel
from tldw.domain.enums import AIProvider, SummaryLength
from tldw.services.ledger import CreditLedger
from tldw.services.users import update_preferences, user_dashboard

router = APIRouter(prefix="/users", tags=["Users"])


class CreditsResponse(BaseModel):
    balance: int | None
    monthly_allocation: int
    next_reset: str | None
    lifetime_earned: int
    lifetime_spent: int
    is_premium: bool


class TransactionResponse(BaseModel):
    transaction_id: str
    type: str
    amount: int
    balance_after: int
    description: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: str


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int


class UsageEntryResponse(BaseModel):
    video_id: str
    ai_provider: str | None = None
    summary_length: str | None = None
    credits_used: int
    cached: bool
    success: bool
    processing_time_ms: int
    created_at: str


class UsageListResponse(BaseModel):
    usage: list[UsageEntryResponse]
    total: int


class PreferencesRequest(BaseModel):
    default_ai_provider: AIProvider | None = None
    default_summary_length: SummaryLength | None = None
    notify_credit_low: bool | None = None
    notify_monthly_reset: bool | None = None


@router.get("/me", summary="Dashboard for the current user")
async def get_me(user: CurrentUserDep, session: SessionDep, clock: ClockDep) -> dict[str, Any]:
    dashboard = user_dashboard(session, user, now=clock())
    session.commit()
    return dashboard


@router.get("/credits", response_model=CreditsResponse, summary="Credit balance")
async def get_credits(user: CurrentUserDep, session: SessionDep, clock: ClockDep) -> CreditsResponse:
    CreditLedger(session).reset_monthly(user, clock())
    session.commit()
    return CreditsResponse(
        balance=None if user.is_premium else user.credit_balance,
        monthly_allocation=user.monthly_allocation,
        next_reset=user.next_credit_reset_at.isoformat() if user.next_credit_reset_at else None,
        lifetime_earned=user.lifetime_earned,
        lifetime_spent=user.lifetime_spent,
        is_premium=user.is_premium,
    )


@router.get("/transactions", response_model=TransactionListResponse, summary="Credit history")
async def list_transactions(
    user: CurrentUserDep,
    session: SessionDep,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> TransactionListResponse:
    """Ledger entries, newest first."""
    base = CreditTransactionModel.user_id == user.id
    total = session.execute(
        select(func.count(CreditTransactionModel.id)).where(base)
    ).scalar_one()
    rows = session.execute(
        select(CreditTransactionModel)
        .where(base)
        .order_by(CreditTransactionModel.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars()

    return TransactionListResponse(
        transactions=[
            TransactionResponse(
                transaction_id=t.transaction_id,
                type=t.type,
                amount=t.amount,
                balance_after=t.balance_after,
                description=t.description,
                metadata=t.metadata_,
                created_at=t.created_at.isoformat(),
            )
            for t in rows
        ],
        total=total,
    )


@router.get("/usage", response_model=UsageListResponse, summary="Summary request history")
async def list_usage(
    user: CurrentUserDep,
    session: SessionDep,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> UsageListResponse:
    base = UsageLogModel.user_id == user.id
    total = session.execute(select(func.count(UsageLogModel.id)).where(base)).scalar_one()
    rows = session.execute(
        select(UsageLogModel)
        .where(base)
        .order_by(UsageLogModel.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars()

    return UsageListResponse(
        usage=[
            UsageEntryResponse(
                video_id=u.video_id,
                ai_provider=u.ai_provider,
                summary_length=u.summary_length,
                credits_used=u.credits_used,
                cached=u.cached,
                success=u.success,
                processing_time_ms=u.processing_time_ms,
                created_at=u.created_at.isoformat(),
            )
            for u in rows
        ],
        total=total,
    )


@router.patch("/preferences", summary="Update preferences")
async def patch_preferences(
    request: PreferencesRequest,
    user: CurrentUserDep,
    session: SessionDep,
) -> dict[str, Any]:
    update_preferences(
        user,
        default_ai_provider=request.default_ai_provider,
        default_summary_length=request.default_summary_length,
        notify_credit_low=request.notify_credit_low,
        notify_monthly_reset=request.notify_monthly_reset,
    )
    session.commit()
    return {
        "default_ai_provider": user.default_ai_provider,
        "default_summary_length": user.default_summary_length,
        "notify_credit_low": user.notify_credit_low,
        "notify_monthly_reset": user.notify_monthly_reset,
    }
