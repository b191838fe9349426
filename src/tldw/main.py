"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tldw import __version__
from tldw.api.routes import admin, auth, health, payments, summaries, transcripts, users
from tldw.config import settings
from tldw.logging import bind_request_context, clear_request_context, get_logger, setup_logging

REQUEST_ID_HEADER = "X-Request-ID"

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "application_starting",
        version=__version__,
        llm_mode=settings.llm_mode,
        transcript_provider=settings.transcript_provider,
        payment_provider=settings.payment_provider,
    )

    try:
        from tldw.db.session import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("database_connected")
    except SQLAlchemyError as e:
        # Readiness probe reports it; serving health endpoints is still useful
        logger.error("database_connection_failed", error=str(e))

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="TLDW",
    description="YouTube video summaries with a shared cache and credit metering",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every log line and credit entry of a request with one id."""
    request_id = bind_request_context(
        request.headers.get(REQUEST_ID_HEADER),
        method=request.method,
        path=request.url.path,
    )
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.include_router(health.router)
app.include_router(auth.router)
for router in (summaries.router, transcripts.router, users.router, payments.router, admin.router):
    app.include_router(router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {"name": "TLDW", "version": __version__, "docs": "/docs"}
