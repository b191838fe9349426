"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LLM_MODE"] = "stub"
os.environ["TRANSCRIPT_PROVIDER"] = "stub"
os.environ["PAYMENT_PROVIDER"] = "stub"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["OPS_DISCORD_WEBHOOK_URL"] = ""
os.environ["NOTIFY_EMAIL_SMTP_HOST"] = ""

from sqlalchemy.orm import Session  # noqa: E402

from tldw.db.models import UserModel  # noqa: E402

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Session on a freshly created in-memory schema."""
    from tldw.db.models import Base
    from tldw.db.session import SessionLocal, engine

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def make_user(session: Session) -> Callable[..., UserModel]:
    """Factory for committed users; free plan unless ``plan="pro"``."""
    from tldw.domain.enums import BillingCycle, Plan, UserRole
    from tldw.services.subscriptions import SubscriptionService
    from tldw.services.users import create_user

    def _make(
        email: str | None = None,
        credit_balance: int | None = None,
        plan: str = Plan.FREE,
        role: UserRole = UserRole.USER,
        created_at: datetime | None = None,
        **fields: Any,
    ) -> UserModel:
        user = create_user(
            session,
            google_id=f"google-{uuid4().hex}",
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            name="Test User",
            role=role,
            now=created_at or NOW,
        )
        if plan == Plan.PRO:
            SubscriptionService(session).upgrade(user, BillingCycle.MONTHLY, 30, now=NOW)
        if credit_balance is not None:
            user.credit_balance = credit_balance
        for key, value in fields.items():
            setattr(user, key, value)
        session.commit()
        return user

    return _make


@pytest.fixture
def transcript_provider():
    """Get a stub transcript provider."""
    from tldw.adapters.transcripts.stub import StubTranscriptProvider

    return StubTranscriptProvider()


@pytest.fixture
def llm_provider():
    """Get a stub LLM provider."""
    from tldw.adapters.llm.stub import StubLLMProvider

    return StubLLMProvider(label="openai")


@pytest.fixture
def failing_llm_provider():
    """Stub LLM provider whose every call fails."""
    from tldw.adapters.llm.stub import StubLLMProvider

    return StubLLMProvider(label="openai", error=RuntimeError("provider unavailable"))


@pytest.fixture
def generator(llm_provider):
    from tldw.services.summarizer import SummaryGenerator

    return SummaryGenerator(provider_factory=lambda provider, model: llm_provider)


@pytest.fixture
def failing_generator(failing_llm_provider):
    from tldw.services.summarizer import SummaryGenerator

    return SummaryGenerator(provider_factory=lambda provider, model: failing_llm_provider)


@pytest.fixture
def payment_gateway():
    """Get a stub payment gateway."""
    from tldw.adapters.payments.stub import StubPaymentGateway

    return StubPaymentGateway()


@pytest.fixture
def notifier():
    from tldw.services.notifications import NotificationService

    return NotificationService()


@pytest.fixture
def locks():
    from tldw.services.orchestrator import GenerationLocks

    return GenerationLocks()


@pytest.fixture
def orchestrator(session, generator, transcript_provider, locks, clock):
    from tldw.services.orchestrator import SummaryOrchestrator
    from tldw.services.transcripts import TranscriptCache

    return SummaryOrchestrator(
        session,
        generator=generator,
        transcripts=TranscriptCache(session, provider=transcript_provider),
        locks=locks,
        clock=clock,
    )


@pytest.fixture
def session_factory(session: Session) -> Callable[[], Any]:
    """Commit/rollback context manager over the test session."""

    @contextmanager
    def _factory() -> Iterator[Session]:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    return _factory


@pytest.fixture
def scheduler(session_factory, clock, notifier):
    from tldw.services.maintenance import MaintenanceScheduler

    return MaintenanceScheduler(session_factory=session_factory, clock=clock, notifier=notifier)


@pytest.fixture
def token_for() -> Callable[[UserModel], dict[str, str]]:
    """Authorization header for a user."""
    from tldw.services.auth import TokenService

    def _headers(user: UserModel) -> dict[str, str]:
        token = TokenService().create_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(
    session,
    generator,
    transcript_provider,
    payment_gateway,
    locks,
    clock,
    scheduler,
) -> Generator[TestClient, None, None]:
    """Test client wired to the test session and stub adapters."""
    from tldw.adapters.payments import get_payment_gateway
    from tldw.adapters.transcripts import get_transcript_provider
    from tldw.api.deps import (
        get_clock,
        get_generation_locks,
        get_maintenance_scheduler,
        get_summary_generator,
    )
    from tldw.db.session import get_session
    from tldw.main import app

    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_summary_generator] = lambda: generator
    app.dependency_overrides[get_transcript_provider] = lambda: transcript_provider
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_generation_locks] = lambda: locks
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_maintenance_scheduler] = lambda: scheduler

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from tldw.main import app

    with TestClient(app) as client:
        yield client
