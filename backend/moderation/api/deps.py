"""API dependencies.

- Request-scoped database session.
- The process-wide ModerationRuntime, owned by the app (see main.create_app).
- Per-token hourly rate limiting.
"""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from moderation.core.db import SessionLocal
from moderation.security.auth import Principal, get_current_principal
from moderation.security.rate_limit import InMemoryHourlyRateLimiter
from moderation.services.runtime import ModerationRuntime


def get_db_session() -> Generator[Session, None, None]:
    """Provide a database session for request scope."""
    session: Session = SessionLocal()
    try:
        session.autoflush = False
        yield session
    finally:
        session.close()


def get_runtime(request: Request) -> ModerationRuntime:
    return request.app.state.runtime


def get_rate_limiter(request: Request) -> InMemoryHourlyRateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(
    principal: Principal = Depends(get_current_principal),
    limiter: InMemoryHourlyRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Enforce the per-token hourly request budget."""
    limiter.check(principal.token_fingerprint)
