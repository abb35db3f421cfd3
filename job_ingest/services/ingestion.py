"""Country-scoped ingestion orchestration, background execution and scheduling."""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel, Field

from job_ingest.agents import BaseFetcher, QueryParams
from job_ingest.agents.location import resolve_country_code
from job_ingest.agents.normalizer import CanonicalJob
from job_ingest.database.models import IngestionSession
from job_ingest.database.operations import Database
from job_ingest.utils.config import Settings, settings
from job_ingest.utils.logger import setup_logger

logger = setup_logger(__name__)


class IngestionRequest(BaseModel):
    """What to ingest: query buckets plus the country they are scoped to."""

    buckets: List[str] = Field(min_length=1)
    country: str = "India"
    location: Optional[str] = None
    filter_by_country: bool = True
    triggered_by: str = "admin"
    num_pages: Optional[int] = Field(default=None, gt=0)
    page_size: Optional[int] = Field(default=None, gt=0)


def session_progress(session: IngestionSession) -> float:
    """Percentage of requested buckets that completed; 100 once the run completed."""

    if session.status == "completed":
        return 100.0
    requested = len(session.buckets_requested or []) or 1
    return round(len(session.buckets_completed or []) / requested * 100, 2)


def session_snapshot(session: IngestionSession) -> Dict[str, Any]:
    return {
        "session_id": session.session_id,
        "status": session.status,
        "buckets_requested": list(session.buckets_requested or []),
        "buckets_completed": list(session.buckets_completed or []),
        "buckets_failed": list(session.buckets_failed or []),
        "total_api_calls": session.total_api_calls,
        "total_raw_jobs_found": session.total_raw_jobs_found,
        "country_scoped_jobs_found": session.country_scoped_jobs_found,
        "new_records_added": session.new_records_added,
        "records_updated": session.records_updated,
        "country_code": session.country_code,
        "original_country_name": session.original_country_name,
        "triggered_by": session.triggered_by,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "duration_ms": session.duration_ms,
        "verification_status": session.verification_status,
        "error_message": session.error_message,
        "progress": session_progress(session),
    }


class IngestionOrchestrator:
    """Runs fetch -> normalize -> filter -> upsert for each bucket, one at a time."""

    def __init__(self, database: Database, fetcher: BaseFetcher, config: Settings = settings) -> None:
        self.db = database
        self.fetcher = fetcher
        self.config = config

    async def create_session(self, request: IngestionRequest) -> str:
        session_id = str(uuid.uuid4())
        country_code = resolve_country_code(request.country)

        await self.db.create_session(
            session_id=session_id,
            buckets_requested=list(request.buckets),
            triggered_by=request.triggered_by,
            country_code=country_code,
            original_country_name=request.country,
            location=request.location or request.country,
            filter_by_country=request.filter_by_country,
        )
        logger.info(
            "[%s] Session created: %d buckets, %s -> %s",
            session_id, len(request.buckets), request.country, country_code,
        )
        return session_id

    async def run(self, request: IngestionRequest) -> Dict[str, Any]:
        """Create a session and execute it to completion."""

        session_id = await self.create_session(request)
        return await self.execute(session_id, request)

    async def execute(self, session_id: str, request: IngestionRequest) -> Dict[str, Any]:
        """Process every bucket sequentially and finalize the session.

        A bucket that raises is recorded as failed and the run moves on. Only an
        error outside the per-bucket boundary marks the whole session failed.
        """
        started = time.monotonic()
        country_code = resolve_country_code(request.country)
        stats = {
            "total_api_calls": 0,
            "total_raw_jobs_found": 0,
            "country_scoped_jobs_found": 0,
            "new_records_added": 0,
            "records_updated": 0,
        }
        completed: List[str] = []
        failed: List[str] = []

        try:
            logger.info("[%s] Starting ingestion for buckets: %s", session_id, ", ".join(request.buckets))

            for bucket in request.buckets:
                try:
                    params = QueryParams(
                        query=bucket,
                        location=request.location or request.country,
                        country_code=country_code,
                        num_pages=request.num_pages or self.config.ingestion_num_pages,
                        page_size=request.page_size or self.config.default_page_size,
                        filter_by_country=request.filter_by_country,
                    )
                    result = await self.fetcher.fetch_all_pages(params)

                    stats["total_api_calls"] += result.api_calls
                    stats["total_raw_jobs_found"] += result.raw_jobs_found
                    stats["country_scoped_jobs_found"] += len(result.jobs)

                    new_count, updated_count = await self._persist_jobs(result.jobs, bucket, session_id)
                    stats["new_records_added"] += new_count
                    stats["records_updated"] += updated_count

                    completed.append(bucket)
                    logger.info(
                        "[%s] Bucket '%s' done: %d jobs, %d new, %d updated%s",
                        session_id, bucket, len(result.jobs), new_count, updated_count,
                        " (fallback data)" if result.used_fallback else "",
                    )
                except Exception as exc:  # pylint: disable=broad-except
                    logger.error("[%s] Bucket '%s' failed: %s", session_id, bucket, exc, exc_info=True)
                    failed.append(bucket)

                await self.db.update_session(
                    session_id,
                    {**stats, "buckets_completed": list(completed), "buckets_failed": list(failed)},
                )

            status = "completed" if not failed else "partial"
            duration_ms = int((time.monotonic() - started) * 1000)
            await self.db.update_session(
                session_id,
                {
                    **stats,
                    "status": status,
                    "buckets_completed": list(completed),
                    "buckets_failed": list(failed),
                    "completed_at": datetime.now(timezone.utc),
                    "duration_ms": duration_ms,
                },
            )
            logger.info(
                "[%s] Ingestion %s: %d new, %d updated in %dms",
                session_id, status, stats["new_records_added"], stats["records_updated"], duration_ms,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("[%s] Ingestion process error: %s", session_id, exc, exc_info=True)
            await self._mark_failed(session_id, exc)
            return {
                "session_id": session_id,
                "status": "failed",
                "error": str(exc),
                **stats,
                "buckets_completed": completed,
                "buckets_failed": failed,
            }

        verification = await self.verify_persisted(session_id, stats["new_records_added"])
        return {
            "session_id": session_id,
            "status": status,
            **stats,
            "buckets_completed": completed,
            "buckets_failed": failed,
            "duration_ms": duration_ms,
            "verification_status": verification,
        }

    async def _persist_jobs(self, jobs: List[CanonicalJob], bucket: str, session_id: str) -> Tuple[int, int]:
        """Upsert jobs by (title, company_id, location); returns (new, updated)."""

        new_count = 0
        updated_count = 0

        for job in jobs:
            try:
                company = await self.db.find_company(job.company)
                if company is None:
                    company = await self.db.create_company(
                        job.company, {"source": job.source_label, "created_via": "ingestion"}
                    )

                existing = await self.db.find_job(job.title, company.id, job.location)
                values = self._job_values(job, company.id, company.name, bucket, session_id)
                await self.db.upsert_job(values, existing_id=existing.id if existing else None)

                if existing:
                    updated_count += 1
                else:
                    new_count += 1
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("[%s] Error saving job '%s': %s", session_id, job.title, exc, exc_info=True)

        return new_count, updated_count

    @staticmethod
    def _job_values(job: CanonicalJob, company_id: int, company_name: str,
                    bucket: str, session_id: str) -> Dict[str, Any]:
        return {
            "title": job.title,
            "company_id": company_id,
            "company": company_name,
            "location": job.location,
            "city": job.city,
            "state": job.state,
            "country": job.country,
            "is_remote": job.is_remote,
            "description": job.description,
            "min_salary": job.min_salary,
            "max_salary": job.max_salary,
            "salary_period": job.salary_period,
            "job_type": job.job_type,
            "posted_at": job.posted_date,
            "external_apply_url": job.external_apply_url,
            "external_id": job.external_id,
            "source_label": job.source_label,
            "raw_data": job.raw_payload,
            "bucket": bucket,
            "session_id": session_id,
        }

    async def verify_persisted(self, session_id: str, expected_new: int) -> Optional[str]:
        """Compare jobs stamped with the session against the new-record count.

        Diagnostic only: a shortfall is logged and stored as "warning" but the
        session status is left untouched.
        """
        try:
            persisted = await self.db.count_jobs_by_session(session_id)
            samples = await self.db.list_jobs_by_session(session_id, limit=3)
            passed = persisted >= expected_new * self.config.verification_threshold
            verification = "passed" if passed else "warning"

            for job in samples:
                logger.info("[%s] Sample job: %s at %s", session_id, job.title, job.company)

            if passed:
                logger.info("[%s] Verification passed: %d jobs persisted (expected %d new)", session_id, persisted, expected_new)
            else:
                logger.warning("[%s] Verification warning: expected ~%d but found %d", session_id, expected_new, persisted)

            await self.db.update_session(session_id, {"verification_status": verification})
            return verification
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("[%s] Verification error: %s", session_id, exc, exc_info=True)
            return None

    async def _mark_failed(self, session_id: str, exc: Exception) -> None:
        try:
            await self.db.update_session(
                session_id,
                {"status": "failed", "completed_at": datetime.now(timezone.utc), "error_message": str(exc)},
            )
        except Exception as update_exc:  # pylint: disable=broad-except
            logger.error("[%s] Could not mark session failed: %s", session_id, update_exc, exc_info=True)


class IngestionService:
    """Non-blocking submit + poll-by-id front for the orchestrator."""

    def __init__(self, orchestrator: IngestionOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._tasks: Set[asyncio.Task] = set()

    async def start_ingestion(self, request: IngestionRequest) -> str:
        """Create the session, schedule the run in the background and return its id."""

        session_id = await self.orchestrator.create_session(request)
        task = asyncio.create_task(
            self.orchestrator.execute(session_id, request), name=f"ingestion-{session_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return session_id

    async def run_now(self, request: IngestionRequest) -> Dict[str, Any]:
        return await self.orchestrator.run(request)

    async def get_session_status(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = await self.orchestrator.db.get_session(session_id)
        return session_snapshot(session) if session else None

    async def list_sessions(self, *, limit: int = 20, offset: int = 0,
                            status: Optional[str] = None) -> Dict[str, Any]:
        sessions = await self.orchestrator.db.list_sessions(limit=limit, offset=offset, status=status)
        total = await self.orchestrator.db.count_sessions(status=status)
        return {
            "sessions": [session_snapshot(session) for session in sessions],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    @property
    def running(self) -> int:
        return len(self._tasks)

    async def wait_for_pending(self) -> None:
        """Wait for every background run started by this service."""

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Ingestion task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Ingestion task %s crashed: %s", task.get_name(), exc, exc_info=exc)


class IngestionScheduler:
    """APS-based scheduler that triggers periodic ingestion runs."""

    def __init__(self, service: IngestionService, config: Settings = settings,
                 interval_minutes: int | None = None) -> None:
        self.service = service
        self.config = config
        self.interval_minutes = interval_minutes or config.ingestion_interval_minutes
        self.scheduler = AsyncIOScheduler()
        self.job_id = "job_ingestion_cycle"

    def start(self) -> None:
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self._run_cycle,
            "interval",
            minutes=self.interval_minutes,
            id=self.job_id,
            max_instances=1,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info("Scheduler started with %s-minute interval", self.interval_minutes)

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def build_request(self) -> IngestionRequest:
        return IngestionRequest(
            buckets=list(self.config.scheduled_buckets),
            country=self.config.scheduled_country,
            triggered_by="scheduler",
        )

    async def _run_cycle(self) -> None:
        await self.service.run_now(self.build_request())

    async def run_once(self) -> Dict[str, Any]:
        return await self.service.run_now(self.build_request())
