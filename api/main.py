"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import alerts, comparison, cron, forecasts, health, jobs, keywords, saved
from api.middleware import RequestContextMiddleware, get_request_id
from core.config import settings
from core.exceptions import TrendArcException
from core.logging import setup_logging
from jobs.scheduler import JobScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title="TrendArc Backend API",
    description="Trend comparison, forecasting and alerting service",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = JobScheduler()


# Include routers
app.include_router(health.router)
app.include_router(comparison.router)
app.include_router(jobs.router)
app.include_router(cron.router)
app.include_router(saved.router)
app.include_router(alerts.router)
app.include_router(forecasts.router)
app.include_router(keywords.router)


@app.exception_handler(TrendArcException)
async def trendarc_exception_handler(request: Request, exc: TrendArcException):
    request_id = get_request_id(request)
    if exc.status_code >= 500:
        logger.error(f"[{request_id}] {exc}")
    else:
        logger.info(f"[{request_id}] {exc.__class__.__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting TrendArc Backend API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down TrendArc Backend API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "TrendArc Backend API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "comparison": "/api/comparison/core",
            "compare": "/api/compare",
            "forecast": "/api/comparison/forecast",
            "gap_forecast": "/api/comparison/gap-forecast",
            "warmup": "/api/jobs/execute-warmup",
            "alerts": "/api/alerts",
            "trust": "/api/forecasts/trust",
            "keywords": "/api/keywords/validate"
        }
    }
