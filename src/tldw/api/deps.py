"""FastAPI dependencies."""

from collections.abc import Callable
from datetime import datetime
from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from tldw.adapters.payments import PaymentGateway, get_payment_gateway
from tldw.adapters.transcripts import TranscriptProvider, get_transcript_provider
from tldw.db.models import UserModel
from tldw.db.session import get_session
from tldw.domain.enums import UserRole
from tldw.domain.errors import AuthenticationError
from tldw.services.auth import ACCESS_TOKEN_COOKIE, TokenService, extract_token, get_token_service
from tldw.services.maintenance import MaintenanceScheduler
from tldw.services.orchestrator import GenerationLocks, SummaryOrchestrator, generation_locks
from tldw.services.summarizer import SummaryGenerator
from tldw.services.transcripts import TranscriptCache
from tldw.utils.time import utcnow

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


def get_clock() -> Callable[[], datetime]:
    return utcnow


ClockDep = Annotated[Callable[[], datetime], Depends(get_clock)]

TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


def get_current_user(
    session: SessionDep,
    tokens: TokenServiceDep,
    authorization: Annotated[str | None, Header()] = None,
    access_token: Annotated[str | None, Cookie(alias=ACCESS_TOKEN_COOKIE)] = None,
) -> UserModel:
    """Resolve the authenticated user or fail with 401 and an error code."""
    try:
        return tokens.authenticate(session, extract_token(authorization, access_token))
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": str(e), "code": e.code},
        ) from e


CurrentUserDep = Annotated[UserModel, Depends(get_current_user)]


def get_admin_user(user: CurrentUserDep) -> UserModel:
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Admin access required", "code": "FORBIDDEN"},
        )
    return user


AdminUserDep = Annotated[UserModel, Depends(get_admin_user)]

PaymentGatewayDep = Annotated[PaymentGateway, Depends(get_payment_gateway)]

TranscriptProviderDep = Annotated[TranscriptProvider, Depends(get_transcript_provider)]


def get_summary_generator() -> SummaryGenerator:
    """Get the summary generator instance."""
    return SummaryGenerator()


def get_generation_locks() -> GenerationLocks:
    return generation_locks


def get_orchestrator(
    session: SessionDep,
    transcripts: TranscriptProviderDep,
    generator: Annotated[SummaryGenerator, Depends(get_summary_generator)],
    locks: Annotated[GenerationLocks, Depends(get_generation_locks)],
    clock: ClockDep,
) -> SummaryOrchestrator:
    """Orchestrator that commits each request's transaction itself."""
    return SummaryOrchestrator(
        session,
        generator=generator,
        transcripts=TranscriptCache(session, provider=transcripts),
        locks=locks,
        clock=clock,
        commit=True,
    )


OrchestratorDep = Annotated[SummaryOrchestrator, Depends(get_orchestrator)]


def get_maintenance_scheduler() -> MaintenanceScheduler:
    return MaintenanceScheduler()


MaintenanceSchedulerDep = Annotated[MaintenanceScheduler, Depends(get_maintenance_scheduler)]
