"""Main FastAPI application for the Bloom Quest study engine."""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from bloomquest.routers import user, study, shop
from bloomquest.db.init_db import init_db
from bloomquest.db.database import get_db
from bloomquest.errors import EngineError
from bloomquest.logging_config import setup_logging, get_logger
from bloomquest.rate_limit import limiter
from bloomquest.config import settings
from bloomquest.constants import DEFAULT_RATE_LIMIT

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup.

    This function runs once when the application starts, performing:
    - Database table creation
    - Demo deck seeding (development only by default)
    """
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="Bloom Quest API",
    description="""
    Progression and economy engine for gamified flashcard study.

    ## Features

    - **Bloom Tiers**: Cards are grouped by Bloom's taxonomy, from Remember to Create
    - **XP and Levels**: Per-deck levels feed an account-wide commander level
    - **Caps**: Session and daily XP caps, with overflow banked in a bonus vault
    - **Tokens**: Earned per correct answer and spent on escalating power-ups
    - **Sessions**: Resumable quest (tier by tier) and remix (shuffled subset) sessions
    - **Anonymous Sessions**: No account required, uses browser cookies

    ## Study Flow

    1. **Bootstrap**: GET `/api/bootstrap` to get a user cookie and progress
    2. **Start Session**: POST `/api/decks/{deck_id}/sessions/quest`
    3. **Answer**: POST each answer to `/api/decks/{deck_id}/attempts`
    4. **Advance**: POST `/api/decks/{deck_id}/sessions/advance`
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "user",
            "description": "User session, progress, customizations and XP vault"
        },
        {
            "name": "study",
            "description": "Answer logging, power-ups and study sessions"
        },
        {
            "name": "shop",
            "description": "Shop catalog and inventory"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

if settings.RATE_LIMIT_ENABLED:
    logger.info(f"Rate limiting enabled: default {DEFAULT_RATE_LIMIT} per IP")

# Add CSRF protection for production
if settings.is_production:
    from starlette.middleware.sessions import SessionMiddleware
    app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
    logger.info("Session middleware enabled for CSRF protection")


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Render engine errors as JSON with their status code."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{exc.error_code}: {exc.message}",
        extra={"request_id": request.headers.get("x-request-id")}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details or {}
        }
    )


# Include routers
app.include_router(user.router)
app.include_router(study.router)
app.include_router(shop.router)


def _probe_database(db: Session) -> Optional[str]:
    """Run a trivial query; return the error text, or None when the database answers."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database probe failed: {e}", exc_info=True)
        return str(e)
    return None


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Liveness plus database connectivity.

    Returns:
        200 {"status": "healthy", "database": "connected", ...}
        503 {"status": "unhealthy", "database": "disconnected", "error": ...}
    """
    error = _probe_database(db)
    if error is not None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected", "error": error, "timestamp": _timestamp()}
        )

    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": _timestamp(),
        "environment": settings.ENVIRONMENT
    }


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Whether the service can take traffic."""
    error = _probe_database(db)
    if error is not None:
        return JSONResponse(status_code=503, content={"status": "not ready", "error": error})
    return {"status": "ready", "timestamp": _timestamp()}
