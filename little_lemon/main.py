import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
import uvicorn
from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app

from little_lemon.config import Settings, settings
from little_lemon.database import Database
from little_lemon.middleware.metrics import MetricsMiddleware
from little_lemon.middleware.request_id import RequestIDMiddleware
from little_lemon.routers import menu, profile
from little_lemon.services.image_cache import ImageCache
from little_lemon.services.menu_fetcher import MenuFetcher
from little_lemon.services.menu_store import MenuStore
from little_lemon.services.profile_store import ProfileStore
from little_lemon.services.sync import SyncOrchestrator
from little_lemon.utils.logging import setup_logging
from little_lemon.utils.tracing import setup_tracing

logger = logging.getLogger(__name__)


def create_app(config: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up, opening local database")
        db = Database(config.database_url)
        db.open()
        SQLAlchemyInstrumentor().instrument(engine=db.engine.sync_engine)

        client = httpx.AsyncClient(timeout=config.http_timeout)
        image_cache = ImageCache(
            db,
            client,
            config.image_cache_dir,
            retention=timedelta(days=config.image_cache_retention_days),
        )
        menu_store = MenuStore(db, image_cache)
        fetcher = MenuFetcher(client, config.menu_url, config.image_base_url)
        orchestrator = SyncOrchestrator(menu_store, fetcher, image_cache)
        profile_store = ProfileStore(db)

        await profile_store.initialize()

        # One sync per process session; a failure is reported, not fatal
        result = await orchestrator.run()
        if not result.ok:
            logger.warning("Initial menu sync failed, POST /menu/sync to retry")

        sweeper = asyncio.create_task(
            image_cache.run_periodic_sweep(config.image_cache_sweep_interval)
        )

        app.state.db = db
        app.state.menu_store = menu_store
        app.state.orchestrator = orchestrator
        app.state.profile_store = profile_store
        logger.info("Startup complete")

        yield

        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await client.aclose()
        await db.close()
        logger.info("Shutting down")

    app = FastAPI(
        title="Little Lemon",
        description="Local menu cache and profile settings",
        version="1.0.0",
        lifespan=lifespan,
    )

    FastAPIInstrumentor.instrument_app(app)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.include_router(menu.router, prefix="/menu", tags=["menu"])
    app.include_router(profile.router, prefix="/profile", tags=["profile"])

    # Expose Prometheus metrics at /metrics
    app.mount("/metrics", make_asgi_app())

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


setup_logging(settings.log_level)
setup_tracing("little-lemon", settings.otlp_endpoint)

app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000, log_config=None)
