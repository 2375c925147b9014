"""
FastAPI application entry point.

Fund monitoring API: portfolio overview rollups, drill-downs, schedule of
investments and excluded positions per vehicle.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fundmon.core.config import settings
from fundmon.core.logging import setup_logging
from fundmon.core.database import close_db
from fundmon.core.metrics import metrics
from fundmon.core.redis import close_metrics_redis, connect_metrics_stream

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Fund Monitoring - Portfolio Position Aggregation & Classification",
    debug=settings.DEBUG,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup() -> None:
    """Attach the metrics stream when enabled."""
    if settings.METRICS_STREAM_ENABLED:
        client = await connect_metrics_stream()
        if client is not None:
            metrics.set_redis(client)
            logger.info(f"Publishing metrics to Redis stream '{settings.METRICS_STREAM_NAME}'")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Run on application shutdown."""
    metrics.set_redis(None)
    await close_db()
    await close_metrics_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


from fundmon.api.overview import router as overview_router
from fundmon.api.soi import router as soi_router
from fundmon.api.excluded import router as excluded_router
from fundmon.api.metrics import router as metrics_router

app.include_router(overview_router, prefix="/api/v1/vehicles", tags=["overview"])
app.include_router(soi_router, prefix="/api/v1/vehicles", tags=["soi"])
app.include_router(excluded_router, prefix="/api/v1/vehicles", tags=["excluded-positions"])
app.include_router(metrics_router, prefix="/api/v1/metrics", tags=["metrics"])
