"""
FastAPI Application

Main entry point for the Stats Dashboard API.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app
import structlog

from stats_dashboard.config import get_settings
from stats_dashboard.config.logging import configure_logging
from stats_dashboard.ingestion.client import StatsApiClient
from stats_dashboard.ingestion.records import ProductRecord
from stats_dashboard.serving.api import RequestLoggingMiddleware, health_router, stats_router
from stats_dashboard.serving.cache import create_metric_cache
from stats_dashboard.serving.dispatcher import AggregationService, ProductSource

settings = get_settings()
logger = structlog.get_logger(__name__)


def create_product_source() -> ProductSource:
    """Stats API when configured, synthetic products otherwise"""
    if settings.stats_api.base_url:
        return StatsApiClient().fetch_products

    if settings.is_production:
        raise RuntimeError("STATS_API_BASE_URL must be set in production")

    count = settings.aggregation.synthetic_products
    logger.warning("No stats API configured, serving synthetic products", products=count)

    async def synthetic_products() -> List[ProductRecord]:
        from stats_dashboard.data.generators import ProductStatsGenerator
        return ProductStatsGenerator().generate(count)

    return synthetic_products


async def create_default_service() -> AggregationService:
    cache = await create_metric_cache()
    return AggregationService(cache, create_product_source())


def create_app(service: Optional[AggregationService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: pre-built aggregation service (tests); built from settings
            during startup when omitted

    Returns:
        Configured FastAPI app instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging()
        logger.info("Starting Stats Dashboard API", environment=settings.app_env)

        aggregation_service = service or await create_default_service()
        await aggregation_service.start()
        app.state.aggregation_service = aggregation_service

        yield

        logger.info("Shutting down...")
        await aggregation_service.dispose()
        await aggregation_service.cache.close()

    app = FastAPI(
        title="Stats Dashboard API",
        description="Supplier / brand / type / article rollups of daily product metrics",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Trees are large and compress well
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(stats_router, prefix="/api/v1/stats", tags=["Stats"])

    if settings.monitoring.enable_metrics_endpoint:
        app.mount("/metrics", make_asgi_app())

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Stats Dashboard API",
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
