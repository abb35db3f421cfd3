from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from job_ingest.agents.normalizer import CanonicalJob


class QueryParams(BaseModel):
    """One bucket's search request against a job API."""

    query: str
    location: Optional[str] = None
    country_code: str = "us"
    num_pages: int = Field(default=5, gt=0)
    page_size: int = Field(default=50, gt=0)
    filter_by_country: bool = True

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, v):
        """Country codes are lowercase ISO-3166-1 alpha-2"""
        v = (v or "").strip().lower()
        if len(v) != 2 or not v.isalpha():
            raise ValueError(f"country_code must be a 2-letter ISO code, got '{v}'")
        return v


class FetchResult(BaseModel):
    """Accepted jobs for one bucket plus the counters the orchestrator records."""

    jobs: List[CanonicalJob] = Field(default_factory=list)
    api_calls: int = 0
    raw_jobs_found: int = 0
    pages_fetched: int = 0
    used_fallback: bool = False


class BaseFetcher(ABC):
    """Base class providing shared helpers for all fetcher agents."""

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name

    @abstractmethod
    async def fetch_all_pages(self, params: QueryParams) -> FetchResult:
        """Fetch, normalize and country-filter every page for one bucket."""
