"""FastAPI application entry point."""
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from buddymatch.core.config import settings
from buddymatch.core.structured_logging import build_log_context
from buddymatch.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from buddymatch.core.rate_limit import limiter

from buddymatch.services.ai_suggestion_cache import build_suggestion_cache


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Buddy Matching API",
    description="HR buddy matching: match lifecycle, buddy capacity and AI suggestions",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# AI suggestion cache (in-memory, or Redis when REDIS_URL is set)
app.state.suggestion_cache = build_suggestion_cache()

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Tag each request with X-Request-ID and log its outcome."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    started = time.perf_counter()

    response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request completed",
        extra=build_log_context(
            request_id=request_id,
            route=request.url.path,
            method=request.method,
            status_code=response.status_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
        ),
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Field-level validation errors as a 400 list."""
    errors = []
    for error in exc.errors():
        # Drop the "body"/"query"/"path" prefix from the location
        loc = [str(part) for part in error.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc) or None, "message": error.get("msg", "Invalid value")})
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


# ============================================================================
# Routers
# ============================================================================

from buddymatch.routers import ai_matching, buddies, feedback, matches, notifications

# Match lifecycle
app.include_router(matches.router)

# Buddy directory, profiles and HR load views
app.include_router(buddies.router)

# AI suggestions (HR only)
app.include_router(ai_matching.router)

# Notifications (user-scoped)
app.include_router(notifications.router)

# Feedback on completed matches
app.include_router(feedback.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
