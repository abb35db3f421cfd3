import ssl
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from job_ingest.database.models import Base, Company, IngestionSession, Job
from job_ingest.utils.config import settings
from job_ingest.utils.logger import setup_logger

logger = setup_logger(__name__)


class Database:
    """Database helper for connections and the ingestion persistence operations."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.database_url = database_url or settings.database_url
        self.engine = None
        self.session_maker: sessionmaker[AsyncSession] | None = None

    async def connect(self) -> None:
        """Initialize database connection and ensure tables exist."""

        connect_args: Dict[str, Any] = {}
        engine_kwargs: Dict[str, Any] = {}
        url = make_url(self.database_url)

        driver = url.drivername
        if driver in {"postgres", "postgresql"}:
            driver = "postgresql+asyncpg"
        elif driver == "sqlite":
            driver = "sqlite+aiosqlite"

        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        sslrootcert = query.pop("sslrootcert", None)
        ssl_no_verify = query.pop("ssl_no_verify", None)

        if sslmode:
            sslmode = sslmode.lower()

        if ssl_no_verify:
            ssl_no_verify = ssl_no_verify.lower() in {"1", "true", "yes"}

        if sslmode == "disable":
            connect_args["ssl"] = False
        elif sslmode in {"require", "verify-ca", "verify-full"}:
            if ssl_no_verify:
                context = ssl._create_unverified_context()
            else:
                context = ssl.create_default_context(cafile=sslrootcert) if sslrootcert else ssl.create_default_context()
                context.check_hostname = sslmode == "verify-full"
            connect_args["ssl"] = context

        if driver.startswith("sqlite") and url.database in (None, "", ":memory:"):
            # In-memory SQLite must share one connection across sessions
            engine_kwargs["poolclass"] = StaticPool
            connect_args["check_same_thread"] = False

        async_url = url.set(drivername=driver, query=query)
        self.engine = create_async_engine(
            async_url.render_as_string(hide_password=False),
            echo=False,
            connect_args=connect_args,
            **engine_kwargs,
        )
        self.session_maker = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database connected and tables ensured")

    async def disconnect(self) -> None:
        """Cleanly close database connections."""

        if self.engine:
            await self.engine.dispose()
            logger.info("Database disconnected")

    def _sessions(self) -> sessionmaker:
        if not self.session_maker:
            raise RuntimeError("Database session maker not initialized")
        return self.session_maker

    # ── Companies ──

    async def find_company(self, name: str) -> Optional[Company]:
        """Exact-name company lookup."""

        async with self._sessions()() as session:
            result = await session.execute(select(Company).where(Company.name == name))
            return result.scalars().first()

    async def create_company(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> Company:
        async with self._sessions()() as session:
            company = Company(name=name, meta=metadata or {})
            session.add(company)
            await session.commit()
            logger.info("Created company: %s (ID: %s)", company.name, company.id)
            return company

    # ── Jobs ──

    async def find_job(self, title: str, company_id: int, location: str) -> Optional[Job]:
        """Look a job up by its identity tuple (title, company_id, location)."""

        stmt = select(Job).where(
            Job.title == title,
            Job.company_id == company_id,
            Job.location == location,
        )
        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def upsert_job(self, values: Dict[str, Any], existing_id: Optional[int] = None) -> Job:
        """Update ``existing_id`` in place, or insert a new published job."""

        now = datetime.now(timezone.utc)
        async with self._sessions()() as session:
            if existing_id is not None:
                job = await session.get(Job, existing_id)
                if job is None:
                    raise LookupError(f"Job {existing_id} disappeared before update")
                for key, value in values.items():
                    setattr(job, key, value)
                job.updated_at = now
            else:
                job = Job(**values, status="published", created_at=now, updated_at=now)
                session.add(job)

            await session.commit()
            return job

    async def count_jobs_by_session(self, session_id: str) -> int:
        stmt = select(func.count(Job.id)).where(Job.session_id == session_id)
        async with self._sessions()() as session:
            return (await session.execute(stmt)).scalar() or 0

    async def list_jobs_by_session(self, session_id: str, limit: int = 3) -> List[Job]:
        """Most recently touched jobs stamped with ``session_id``."""

        stmt = (
            select(Job)
            .where(Job.session_id == session_id)
            .order_by(Job.updated_at.desc(), Job.id.desc())
            .limit(limit)
        )
        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_jobs(self) -> int:
        async with self._sessions()() as session:
            return (await session.execute(select(func.count(Job.id)))).scalar() or 0

    async def count_jobs_by_source_label(self) -> Dict[str, int]:
        stmt = (
            select(Job.source_label, func.count(Job.id))
            .group_by(Job.source_label)
            .order_by(func.count(Job.id).desc())
        )
        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return {label: count for label, count in result.all()}

    async def find_duplicate_identities(self, limit: int = 15) -> List[Dict[str, Any]]:
        """Identity groups (title, company_id, location) holding more than one row."""

        stmt = (
            select(Job.title, Job.company_id, Job.location, func.count(Job.id).label("cnt"))
            .group_by(Job.title, Job.company_id, Job.location)
            .having(func.count(Job.id) > 1)
            .order_by(func.count(Job.id).desc())
            .limit(limit)
        )
        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return [
                {"title": title, "company_id": company_id, "location": location, "count": cnt}
                for title, company_id, location, cnt in result.all()
            ]

    # ── Ingestion sessions ──

    async def create_session(self, **fields: Any) -> IngestionSession:
        """Insert a new in-progress ingestion session."""

        record = IngestionSession(
            buckets_completed=[],
            buckets_failed=[],
            status="in_progress",
            started_at=datetime.now(timezone.utc),
            total_api_calls=0,
            total_raw_jobs_found=0,
            country_scoped_jobs_found=0,
            new_records_added=0,
            records_updated=0,
            **fields,
        )
        async with self._sessions()() as session:
            session.add(record)
            await session.commit()
            return record

    async def update_session(self, session_id: str, patch: Dict[str, Any]) -> None:
        """Apply ``patch`` to one session row in a single UPDATE."""

        stmt = update(IngestionSession).where(IngestionSession.session_id == session_id).values(**patch)
        async with self._sessions()() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_session(self, session_id: str) -> Optional[IngestionSession]:
        async with self._sessions()() as session:
            return await session.get(IngestionSession, session_id)

    async def list_sessions(
        self,
        *,
        limit: int = 20,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> List[IngestionSession]:
        """Return sessions newest first, optionally filtered by status."""

        limit = max(1, min(limit, 200))
        offset = max(0, offset)

        stmt = select(IngestionSession).order_by(IngestionSession.started_at.desc()).offset(offset).limit(limit)
        if status:
            stmt = stmt.where(IngestionSession.status == status)

        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_sessions(self, status: Optional[str] = None) -> int:
        stmt = select(func.count(IngestionSession.session_id))
        if status:
            stmt = stmt.where(IngestionSession.status == status)
        async with self._sessions()() as session:
            return (await session.execute(stmt)).scalar() or 0
