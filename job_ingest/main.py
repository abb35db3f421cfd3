"""Application entrypoint and lightweight CLI."""

import argparse
import asyncio
import json

import uvicorn

from job_ingest.agents.jsearch import JSearchFetcher
from job_ingest.database.operations import Database
from job_ingest.services.ingestion import IngestionOrchestrator, IngestionRequest
from job_ingest.utils.config import settings


async def _run_ingestion_once(request: IngestionRequest) -> dict:
    database = Database(settings.database_url)
    await database.connect()
    try:
        orchestrator = IngestionOrchestrator(database, JSearchFetcher(settings), settings)
        return await orchestrator.run(request)
    finally:
        await database.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description="Country-scoped job ingestion")
    parser.add_argument(
        "--ingest-once",
        action="store_true",
        help="Run a single ingestion session then exit",
    )
    parser.add_argument(
        "--bucket",
        action="append",
        dest="buckets",
        help="Query bucket to ingest (repeatable); defaults to SCHEDULED_BUCKETS",
    )
    parser.add_argument("--country", default=None, help="Target country name or ISO code")
    parser.add_argument("--num-pages", type=int, default=None)
    parser.add_argument(
        "--no-country-filter",
        action="store_true",
        help="Keep jobs regardless of location",
    )

    args = parser.parse_args()

    if args.ingest_once:
        request = IngestionRequest(
            buckets=args.buckets or list(settings.scheduled_buckets),
            country=args.country or settings.scheduled_country,
            filter_by_country=not args.no_country_filter,
            num_pages=args.num_pages,
            triggered_by="cli",
        )
        summary = asyncio.run(_run_ingestion_once(request))
        print(json.dumps(summary, indent=2, default=str))  # noqa: T201
        return

    uvicorn.run(
        "job_ingest.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.api_port,
        reload=settings.environment != "production",
    )


if __name__ == "__main__":
    main()
