"""
FastAPI service for the AdCraft result cache and performance dashboard.

Wires the key/value store, result cache, metrics recorder, statistics
aggregator and retention sweeper through the dependency injection container.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from adcraft import __version__
from adcraft.core.container import container
from adcraft.core.health import get_health_status, set_startup_time
from adcraft.core.logging import configure_logging, get_logger
from adcraft.routers import cache, performance

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    settings = container.settings()
    logger.info("Starting AdCraft cache service", store_backend=settings.store_backend)

    await container.store().startup()
    set_startup_time()

    sweeper = container.sweeper()
    if settings.maintenance_enabled:
        # sweeps once immediately, then on the configured intervals
        await sweeper.start_background_maintenance()
    else:
        results = await sweeper.run_once()
        logger.info("Startup sweep completed", **results)

    logger.info("Services started successfully")
    yield

    await sweeper.stop_background_maintenance()
    await container.store().shutdown()
    logger.info("Services shutdown complete")


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception", error_type=type(e).__name__, error=str(e),
                         exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


def create_app() -> FastAPI:
    settings = container.settings()
    configure_logging(settings)

    app = FastAPI(
        title="AdCraft Cache Service",
        version=__version__,
        description="Result cache and performance accounting for generative ad creatives",
        lifespan=lifespan,
    )

    app.add_middleware(CatchAllExceptionsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(performance.router)
    app.include_router(cache.router)

    @app.get("/health")
    async def health_check():
        """Detailed health check."""
        health = await get_health_status(container.store(), container.sweeper(), settings)
        return {
            **health,
            "service": "adcraft",
            "version": __version__,
            "environment": "development" if settings.is_development else "production",
            "timestamp": datetime.now().isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = container.settings()
    logger.info("Starting AdCraft cache service",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "adcraft.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
