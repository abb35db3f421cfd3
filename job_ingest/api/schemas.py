from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class IngestionStartRequest(BaseModel):
    """Body accepted by POST /api/ingestions."""

    buckets: List[str] = Field(min_length=1)
    country: str = "India"
    location: Optional[str] = None
    filter_by_country: bool = True
    num_pages: Optional[int] = Field(default=None, gt=0, le=100)
    page_size: Optional[int] = Field(default=None, gt=0, le=100)


class IngestionStartResponse(BaseModel):
    """Returned immediately; the run continues in the background."""

    session_id: str
    message: str = "Ingestion started"
    status: str
    buckets_requested: List[str]
    filter_by_country: bool
    started_at: datetime


class SessionStatusResponse(BaseModel):
    """Polling snapshot of one ingestion session."""

    session_id: str
    status: str
    buckets_requested: List[str]
    buckets_completed: List[str]
    buckets_failed: List[str]
    total_api_calls: int
    total_raw_jobs_found: int
    country_scoped_jobs_found: int
    new_records_added: int
    records_updated: int
    country_code: str
    original_country_name: Optional[str] = None
    triggered_by: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    verification_status: Optional[str] = None
    error_message: Optional[str] = None
    progress: float


class SessionListResponse(BaseModel):
    """Paginated session log."""

    sessions: List[SessionStatusResponse]
    total: int
    limit: int
    offset: int
