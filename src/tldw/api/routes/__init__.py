"""API route modules."""

from tldw.api.routes import (
    admin,
    auth,
    health,
    payments,
    summaries,
    transcripts,
    users,
)

__all__ = ["admin", "auth", "health", "payments", "summaries", "transcripts", "users"]
