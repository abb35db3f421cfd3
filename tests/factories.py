from typing import Dict, List, Optional

from job_ingest.agents import BaseFetcher, FetchResult, QueryParams
from job_ingest.agents.normalizer import CanonicalJob


def make_job(title: str = "Backend Engineer", company: str = "Initech",
             location: str = "Bangalore, KA, India", **overrides) -> CanonicalJob:
    fields = {
        "title": title,
        "company": company,
        "location": location,
        "city": "Bangalore",
        "state": "KA",
        "country": "India",
        "description": "Build APIs",
        "external_apply_url": "https://careers.initech.com/apply/1",
        "external_id": "abc123",
        "source_label": "API",
    }
    fields.update(overrides)
    return CanonicalJob(**fields)


class StubFetcher(BaseFetcher):
    """Fetcher returning canned jobs per bucket; buckets listed in ``failing`` raise."""

    def __init__(self, jobs_by_bucket: Optional[Dict[str, List[CanonicalJob]]] = None,
                 failing: Optional[List[str]] = None) -> None:
        super().__init__("stub")
        self.jobs_by_bucket = jobs_by_bucket or {}
        self.failing = set(failing or [])
        self.calls: List[QueryParams] = []

    async def fetch_all_pages(self, params: QueryParams) -> FetchResult:
        self.calls.append(params)
        if params.query in self.failing:
            raise RuntimeError(f"bucket {params.query} exploded")
        jobs = list(self.jobs_by_bucket.get(params.query, []))
        return FetchResult(jobs=jobs, api_calls=1, raw_jobs_found=len(jobs) + 1, pages_fetched=1)
