import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_incrementing

from job_ingest.agents import BaseFetcher, FetchResult, QueryParams
from job_ingest.agents.fallback import fallback_salary_estimate, generate_fallback_jobs
from job_ingest.agents.location import is_in_country
from job_ingest.agents.normalizer import CanonicalJob, NormalizerAgent, normalizer
from job_ingest.utils.config import Settings, settings
from job_ingest.utils.logger import setup_logger

logger = setup_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class JSearchAPIError(Exception):
    """Raised when the JSearch API answers with a non-200 status or an error payload."""


def extract_raw_jobs(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the job list from either ``{data: [...]}`` or ``{data: {jobs: [...]}}``."""

    if not payload:
        return []
    data = payload.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("jobs") or []
    return []


class JSearchFetcher(BaseFetcher):
    """Paginated, country-scoped fetcher for the JSearch API."""

    def __init__(
        self,
        config: Settings = settings,
        job_normalizer: NormalizerAgent = normalizer,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        super().__init__("jsearch")
        self.config = config
        self.normalizer = job_normalizer
        self._sleep = sleep
        self.api_key = config.jsearch_api_key
        self.base_url = f"https://{config.jsearch_api_host}{config.jsearch_base_path}"
        if not self.api_key:
            logger.warning("[%s] JSEARCH_API_KEY missing; fetcher will return fallback data", self.source_name)

    async def fetch_all_pages(self, params: QueryParams) -> FetchResult:
        """Fetch up to ``params.num_pages`` pages and keep jobs inside the target country.

        Pagination stops at the page limit, on the first empty page, or when a
        page after the first fails. A failing first page (or a missing API key)
        yields synthetic fallback jobs for the whole bucket instead.
        """
        result = FetchResult()

        if not self.api_key:
            logger.warning("[%s] No API key configured, using fallback data for '%s'", self.source_name, params.query)
            return self._fallback_result(params, result)

        logger.info(
            "[%s] Fetching '%s' in %s (up to %d pages x %d jobs)",
            self.source_name, params.query, params.country_code.upper(), params.num_pages, params.page_size,
        )

        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            for page in range(1, params.num_pages + 1):
                request_params = {
                    "query": params.query,
                    "country": params.country_code,
                    "page": page,
                    "num_pages": 1,
                    "page_size": params.page_size,
                }

                try:
                    payload = await self._request_with_retry(session, "search", request_params, result)
                except Exception as exc:  # pylint: disable=broad-except
                    logger.warning("[%s] Page %d failed for '%s': %s", self.source_name, page, params.query, exc)
                    if page == 1:
                        logger.warning("[%s] First page failed, using fallback data", self.source_name)
                        return self._fallback_result(params, result)
                    break

                raw_jobs = extract_raw_jobs(payload)
                if not raw_jobs:
                    logger.info("[%s] No more jobs on page %d, stopping pagination", self.source_name, page)
                    break

                result.pages_fetched += 1
                result.raw_jobs_found += len(raw_jobs)
                accepted = self._accept_jobs(raw_jobs, params)
                result.jobs.extend(accepted)

                logger.info(
                    "[%s] Page %d: %d jobs, kept %d in %s (total %d)",
                    self.source_name, page, len(raw_jobs), len(accepted),
                    params.country_code.upper(), len(result.jobs),
                )

                if page < params.num_pages:
                    await self._sleep(self.config.request_delay_ms * 2 / 1000)

        logger.info("[%s] Found %d jobs for '%s'", self.source_name, len(result.jobs), params.query)
        return result

    async def fetch_job_details(self, job_id: str, country_code: str = "us") -> Optional[CanonicalJob]:
        """Fetch a single job by its JSearch id; None when unavailable."""

        if not self.api_key:
            return None

        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                payload = await self._request_with_retry(
                    session, "job-details", {"job_id": job_id, "country": country_code}, FetchResult()
                )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("[%s] Job details error for %s: %s", self.source_name, job_id, exc, exc_info=True)
            return None

        raw_jobs = extract_raw_jobs(payload)
        return self.normalizer.normalize(raw_jobs[0]) if raw_jobs else None

    async def estimate_salary(self, job_title: str, location: str) -> Dict[str, Any]:
        """Salary estimate from the API, or a keyword-based fallback band."""

        if not self.api_key:
            return fallback_salary_estimate(job_title)

        params = {
            "job_title": job_title,
            "location": location,
            "location_type": "ANY",
            "years_of_experience": "ALL",
        }
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                payload = await self._request_with_retry(session, "estimated-salary", params, FetchResult())
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("[%s] Salary estimate error for '%s': %s", self.source_name, job_title, exc, exc_info=True)
            return fallback_salary_estimate(job_title)

        data = payload.get("data")
        if isinstance(data, list) and data:
            return data[0]
        return data or fallback_salary_estimate(job_title)

    def _accept_jobs(self, raw_jobs: List[Dict[str, Any]], params: QueryParams) -> List[CanonicalJob]:
        accepted: List[CanonicalJob] = []
        for raw_job in raw_jobs:
            try:
                job = self.normalizer.normalize(raw_job)
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("[%s] Normalization error: %s", self.source_name, exc, exc_info=True)
                continue

            if job is None:
                continue

            if params.filter_by_country and not is_in_country(
                params.country_code, job.location, job.city, job.state, job.country
            ):
                logger.debug("[%s] Rejected outside %s: %s (%s)", self.source_name, params.country_code, job.title, job.location)
                continue

            accepted.append(job)
        return accepted

    def _fallback_result(self, params: QueryParams, result: FetchResult) -> FetchResult:
        jobs = generate_fallback_jobs(params.query, params.country_code)
        logger.warning("[%s] Generated %d fallback jobs for '%s'", self.source_name, len(jobs), params.query)
        return result.model_copy(
            update={"jobs": jobs, "raw_jobs_found": len(jobs), "used_fallback": True}
        )

    async def _request_with_retry(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        params: Dict[str, Any],
        result: FetchResult,
    ) -> Dict[str, Any]:
        """Run one request with rate limiting and incremental backoff.

        The first attempt is followed by up to ``max_retries`` retries, waiting
        ``retry_base_delay_ms * attempt`` between them. The last error is re-raised.
        """
        base_delay = self.config.retry_base_delay_ms / 1000

        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "[%s] API error (attempt %d/%d): %s; retrying in %.1fs",
                self.source_name,
                retry_state.attempt_number,
                self.config.max_retries + 1,
                retry_state.outcome.exception() if retry_state.outcome else None,
                retry_state.next_action.sleep if retry_state.next_action else 0,
            )

        async def _attempt() -> Dict[str, Any]:
            await self._sleep(self.config.request_delay_ms / 1000)
            result.api_calls += 1
            return await self._request(session, endpoint, params)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=wait_incrementing(start=base_delay, increment=base_delay),
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(_attempt)

    async def _request(self, session: aiohttp.ClientSession, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "x-api-key": self.api_key,
            "Accept": "application/json",
        }
        query = {key: str(value) for key, value in params.items()}

        async with session.get(f"{self.base_url}/{endpoint}", params=query, headers=headers) as response:
            if response.status != 200:
                body = await response.text()
                raise JSearchAPIError(f"HTTP {response.status}: {body[:200]}")
            payload = await response.json(content_type=None)

        if not isinstance(payload, dict):
            raise JSearchAPIError(f"Unexpected response body: {str(payload)[:200]}")
        if payload.get("error"):
            raise JSearchAPIError(str(payload["error"]))

        return payload
