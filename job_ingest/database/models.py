from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

SESSION_STATUSES = ("in_progress", "completed", "partial", "failed")


class Company(Base):
    """Employer resolved by exact name during ingestion."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    meta = Column("metadata", JSON)  # {source, created_via}
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Job(Base):
    __tablename__ = "jobs"

    # ── Identity ──
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    company = Column(String(255), nullable=False)  # denormalized display name
    location = Column(String(500), nullable=False)  # composed "City, State, Country"

    # ── Location parts ──
    city = Column(String(200))
    state = Column(String(200))
    country = Column(String(100))
    is_remote = Column(Boolean, default=False)

    # ── Details ──
    description = Column(Text)
    min_salary = Column(Float)
    max_salary = Column(Float)
    salary_period = Column(String(20))
    job_type = Column(String(50))
    posted_at = Column(DateTime(timezone=True))

    # ── Provenance ──
    external_apply_url = Column(String(2000))
    external_id = Column(String(200))
    source_label = Column(String(20), nullable=False)  # API / Fallback
    raw_data = Column(JSON)
    bucket = Column(String(200))
    session_id = Column(String(36), ForeignKey("ingestion_sessions.session_id"), index=True)
    status = Column(String(20), default="published")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_job_identity", "title", "company_id", "location"),
        Index("idx_job_source_label", "source_label"),
    )


class IngestionSession(Base):
    """One end-to-end ingestion run across all requested buckets."""
    __tablename__ = "ingestion_sessions"

    session_id = Column(String(36), primary_key=True)

    buckets_requested = Column(JSON, nullable=False)
    buckets_completed = Column(JSON, nullable=False)
    buckets_failed = Column(JSON, nullable=False)

    status = Column(String(20), nullable=False, default="in_progress", index=True)

    # ── Statistics ──
    total_api_calls = Column(Integer, default=0)
    total_raw_jobs_found = Column(Integer, default=0)
    country_scoped_jobs_found = Column(Integer, default=0)
    new_records_added = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)

    # ── Timing ──
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True))
    duration_ms = Column(Integer)

    # ── Context ──
    triggered_by = Column(String(20), default="admin")
    country_code = Column(String(2), nullable=False)
    original_country_name = Column(String(100))
    location = Column(String(200))
    filter_by_country = Column(Boolean, default=True)

    verification_status = Column(String(20))  # passed / warning
    error_message = Column(Text)

    __table_args__ = (
        Index("idx_session_started_at", "started_at"),
        Index("idx_session_status_started", "status", "started_at"),
    )
