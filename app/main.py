"""
Main FastAPI application for the PUBG Tournament Leaderboard API.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from app.core.config import settings
from app.core.database import init_db
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core.rate_limit import limiter
from app.api.routes import matches, scoring, screenshots, teams, tournaments
from app.services.screenshot_extraction_service import close_extraction_client

# Load environment variables from .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Configure structured logging (coloured console output when LOG_JSON=false)
configure_logging(
    level=settings.LOG_LEVEL,
    json_output=settings.LOG_JSON
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables created")

    if not settings.AI_GATEWAY_API_KEY:
        logger.warning("AI_GATEWAY_API_KEY not set - screenshot analysis will fail")

    logger.info("Application started")

    yield

    # Shutdown
    await close_extraction_client()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tournament leaderboard for PUBG matches with AI screenshot analysis",
    lifespan=lifespan
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Initialize Prometheus metrics BEFORE including routes
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
logger.info("Prometheus metrics initialized at /metrics")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1
app.include_router(screenshots.router, prefix="/api/v1")
app.include_router(matches.router, prefix="/api/v1")
app.include_router(teams.router, prefix="/api/v1")
app.include_router(tournaments.router, prefix="/api/v1")
app.include_router(scoring.router, prefix="/api/v1")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "screenshots": "/api/v1/screenshots/analyze",
            "team_screenshots": "/api/v1/teams/{team_id}/screenshots",
            "matches": "/api/v1/teams/{team_id}/matches",
            "tournaments": "/api/v1/tournaments",
            "standings": "/api/v1/tournaments/{tournament_id}/standings",
            "scoring": "/api/v1/scoring/preview",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics"
        }
    }


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.get("/api/health")
@limiter.limit("60/minute")
async def api_health(request: Request):
    """Detailed API health check with component-level status."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "components": {}
    }

    all_healthy = True

    # 1. Database Health Check
    try:
        from app.core.database import SessionLocal
        from app.models import MatchRecord, Team, Tournament

        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            health_status["components"]["database"] = {
                "status": "connected",
                "counts": {
                    "tournaments": db.query(Tournament).count(),
                    "teams": db.query(Team).count(),
                    "match_records": db.query(MatchRecord).count(),
                }
            }
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        all_healthy = False

    # 2. AI gateway configuration (no network call; every probe would be billed)
    health_status["components"]["ai_gateway"] = {
        "status": "configured" if settings.AI_GATEWAY_API_KEY else "missing_api_key",
        "model": settings.AI_MODEL
    }

    if not all_healthy:
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "healthy" else 503

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing parameters are a 400, not FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid or missing parameters", "detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
