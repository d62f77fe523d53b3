"""FastAPI application (content moderation).

Operational goals:
- Uniform response envelope for successes and failures
- Strict authentication + role-based authorization
- Per-token rate limiting
- Request-id propagation and structured access logs
- Explicit degraded responses when storage or the scorer is unavailable
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from engine.core.errors import ModerationError
from moderation.api.router import router as api_router
from moderation.core.db import DATABASE_URL_ENV, SessionLocal
from moderation.schemas.common import failure
from moderation.security.rate_limit import InMemoryHourlyRateLimiter
from moderation.services.runtime import ModerationRuntime, build_runtime, seed_and_load_rules
import moderation.models as _models  # noqa: F401  (register all ORM models deterministically)


logger = logging.getLogger("moderation")
# Access logs are part of the moderation audit trail.
logger.setLevel(logging.INFO)


def _validation_details(exc: RequestValidationError) -> dict:
    fields = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        fields.append({"field": loc, "message": err.get("msg", "")})
    return {"fields": fields}


def create_app(
    runtime: Optional[ModerationRuntime] = None,
    *,
    session_factory: Optional[Callable[[], Session]] = None,
) -> FastAPI:
    runtime = runtime or build_runtime()
    if session_factory is None and os.environ.get(DATABASE_URL_ENV):
        session_factory = SessionLocal

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if session_factory is not None:
            seed_and_load_rules(runtime, session_factory)
        else:
            logger.warning("No database configured; serving seed rules only")
        yield

    app = FastAPI(
        title="Content Moderation API",
        version="1.0.0",
        openapi_url="/openapi.json",
        docs_url=None,
        redoc_url=None,
        description="Automated content screening, human review queue, reputation and feedback.",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.state.rate_limiter = InMemoryHourlyRateLimiter(limit_per_hour=runtime.settings.rate_limit_per_hour)

    # Allow CORS for Frontend dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.exception_handler(ModerationError)
    async def moderation_error_handler(request: Request, exc: ModerationError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(exc.code, exc.message, details=exc.details, degraded=exc.status_code == 503),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=failure("validation_error", "Request validation failed.", details=_validation_details(exc)),
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        # Partial DB availability / connection errors: fail safely.
        logger.error(f"Storage unavailable: {exc.__class__.__name__}")
        return JSONResponse(
            status_code=503,
            content=failure("storage_unavailable", "Service temporarily unavailable.", degraded=True),
        )

    @app.middleware("http")
    async def request_id_and_access_log(request: Request, call_next: Callable):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error", extra={"request_id": request_id})
            return JSONResponse(
                status_code=500,
                content=failure("internal_error", "Internal error."),
                headers={"x-request-id": request_id},
            )

        duration_ms = int((time.time() - start) * 1000)
        response.headers["x-request-id"] = request_id

        # Structured access log (no content text, no raw tokens).
        logger.info(
            json.dumps(
                {
                    "event": "access",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": getattr(response, "status_code", None),
                    "duration_ms": duration_ms,
                    "principal": getattr(request.state, "principal_fingerprint", None),
                }
            )
        )
        return response

    return app


app = create_app()
