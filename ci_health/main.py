"""
CI health API.

Serves job, platform, defect component and per-test pass rate reports for
each release, plus the bug mapping sync endpoints.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi_cache import FastAPICache
from fastapi_cache.backends.inmemory import InMemoryBackend

from ci_health.config import get_settings
from ci_health.database import SessionLocal, init_db
from ci_health.models.db_models import Release
from ci_health.tasks.scheduler import start_scheduler, stop_scheduler

VERSION = "1.0.0"
CACHE_PREFIX = "ci-health-cache"

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format=settings.LOG_FORMAT,
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


def init_cache():
    """
    Initialize fastapi-cache.

    Redis is used when REDIS_URL is set; the connection is not checked here.
    The in-memory backend is initialized otherwise, because the @cache
    decorator needs a backend even when caching is disabled.
    """
    if settings.CACHE_ENABLED and settings.REDIS_URL:
        try:
            from fastapi_cache.backends.redis import RedisBackend
            from redis import asyncio as aioredis
            client = aioredis.from_url(settings.REDIS_URL, encoding="utf8", decode_responses=True)
            FastAPICache.init(RedisBackend(client), prefix=CACHE_PREFIX)
            logger.info(f"Report cache using Redis at {settings.REDIS_URL}")
            return
        except Exception as e:
            logger.warning(f"Redis unavailable ({e}), report cache kept in memory")

    FastAPICache.init(InMemoryBackend(), prefix=CACHE_PREFIX, enable=settings.CACHE_ENABLED)
    logger.info(f"Report cache in memory (enabled={settings.CACHE_ENABLED})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, set up the cache and run the bug sync scheduler for the app's lifetime."""
    logger.info(f"CI Health API {VERSION} starting, database: {settings.DATABASE_URL}")

    # Alembic owns the schema in deployed environments; this covers local runs
    init_db()
    init_cache()

    try:
        start_scheduler()
    except Exception as e:
        logger.error(f"Scheduler did not start, bug sync disabled: {e}", exc_info=True)

    yield

    try:
        stop_scheduler()
    except Exception as e:
        logger.error(f"Scheduler shutdown failed: {e}", exc_info=True)
    logger.info("CI Health API stopped")


def _install_rate_limiting(app: FastAPI) -> None:
    """Per-client request limit on every route; limiter is disabled when RATE_LIMIT_ENABLED is off."""
    limit = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[limit],
        enabled=settings.RATE_LIMIT_ENABLED
    )
    if settings.RATE_LIMIT_ENABLED:
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
        app.add_middleware(SlowAPIMiddleware)
        logger.info(f"Rate limit: {limit} per client")


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Database error", "detail": "The report database could not be queried"}
    )


async def invalid_input_handler(request: Request, exc: ValueError):
    """Bad filters and reporting windows raised by the services."""
    logger.warning(f"Invalid input on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": "Invalid input", "detail": str(exc)})


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred"}
    )


app = FastAPI(
    title="CI Health API",
    description="""
    Aggregated CI job health across release branches.

    - Job and platform pass percentages, with and without known failures
    - Defect components ranked by the job failures they cause
    - Current vs previous period comparisons for jobs and individual tests
    """,
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
_install_rate_limiting(app)
app.add_exception_handler(SQLAlchemyError, database_error_handler)
app.add_exception_handler(ValueError, invalid_input_handler)
app.add_exception_handler(Exception, unexpected_error_handler)


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness check."""
    return {"status": "healthy", "version": VERSION}


@app.get("/health/ready", tags=["System"])
async def readiness_probe():
    """200 with the number of tracked releases when the database answers, 503 otherwise."""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            releases = db.query(func.count(Release.id)).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Readiness probe failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "reason": "database unavailable"})
    return {"status": "ready", "releases": releases}


@app.get("/api/v1", tags=["System"])
async def api_root():
    """Entry points of the API."""
    return {
        "message": "CI Health API",
        "version": VERSION,
        "docs": "/docs",
        "reports": "/api/v1/reports/{release}",
        "tests": "/api/v1/tests/{release}",
        "bugs": "/api/v1/bugs/status",
    }


from ci_health.routers import reports, tests, bugs

app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports v1"])
app.include_router(tests.router, prefix="/api/v1/tests", tags=["Tests v1"])
app.include_router(bugs.router, prefix="/api/v1/bugs", tags=["Bugs v1"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ci_health.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
