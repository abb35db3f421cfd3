from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from job_ingest.api.schemas import (
    IngestionStartRequest,
    IngestionStartResponse,
    SessionListResponse,
    SessionStatusResponse,
)
from job_ingest.services.ingestion import IngestionRequest, IngestionService

router = APIRouter(prefix="/api", tags=["ingestion"])


def _service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


@router.get("/health")
async def health_check() -> dict:
    """Basic health endpoint for uptime monitoring."""

    return {"status": "ok"}


@router.post("/ingestions", response_model=IngestionStartResponse, status_code=202)
async def start_ingestion(body: IngestionStartRequest, request: Request) -> IngestionStartResponse:
    """Start a country-scoped ingestion run and return its session id right away."""

    service = _service(request)
    session_id = await service.start_ingestion(
        IngestionRequest(**body.model_dump(), triggered_by="admin")
    )
    snapshot = await service.get_session_status(session_id)

    return IngestionStartResponse(
        session_id=session_id,
        status="in_progress",
        buckets_requested=body.buckets,
        filter_by_country=body.filter_by_country,
        started_at=snapshot["started_at"],
    )


@router.get("/ingestions", response_model=SessionListResponse)
async def list_ingestions(
    request: Request,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status: Optional[Literal["in_progress", "completed", "partial", "failed"]] = Query(default=None),
) -> SessionListResponse:
    """Return the ingestion session log, newest first."""

    return await _service(request).list_sessions(limit=limit, offset=offset, status=status)


@router.get("/ingestions/{session_id}", response_model=SessionStatusResponse)
async def get_ingestion_status(session_id: str, request: Request) -> SessionStatusResponse:
    """Poll one session's progress."""

    snapshot = await _service(request).get_session_status(session_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="Ingestion session not found")
    return snapshot
