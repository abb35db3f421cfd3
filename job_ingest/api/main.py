from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from job_ingest.agents import BaseFetcher
from job_ingest.agents.jsearch import JSearchFetcher
from job_ingest.api.routes import router
from job_ingest.database.operations import Database
from job_ingest.services.ingestion import IngestionOrchestrator, IngestionScheduler, IngestionService
from job_ingest.utils.config import Settings, settings


def create_app(
    config: Settings = settings,
    database: Optional[Database] = None,
    fetcher: Optional[BaseFetcher] = None,
) -> FastAPI:
    """FastAPI application factory."""

    app = FastAPI(title="Country-scoped Job Ingestion API", version="0.1.0")

    database = database or Database(config.database_url)
    fetcher = fetcher or JSearchFetcher(config)
    service = IngestionService(IngestionOrchestrator(database, fetcher, config))
    scheduler = IngestionScheduler(service, config)

    app.state.database = database
    app.state.ingestion_service = service
    app.state.scheduler = scheduler

    if config.environment != "production":
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        await database.connect()
        if config.scheduler_enabled:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        if config.scheduler_enabled:
            scheduler.stop()
        # Runs cannot be cancelled; let in-flight sessions finalize
        await service.wait_for_pending()
        await database.disconnect()

    app.include_router(router)
    return app
