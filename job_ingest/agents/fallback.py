"""Synthetic job data used when the JSearch API is unavailable or misconfigured.

Nothing produced here is a real listing. Every generated job carries
``source_label="Fallback"`` and an apply URL on the placeholder domain so it
stays distinguishable downstream.
"""

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from job_ingest.agents.location import COUNTRY_TABLES, country_display_name
from job_ingest.agents.normalizer import FALLBACK_DOMAIN, CanonicalJob

FALLBACK_COMPANIES = [
    "Google", "Microsoft", "Apple", "Amazon", "Netflix", "Uber",
    "Airbnb", "Tesla", "Meta", "LinkedIn", "Adobe", "Salesforce",
    "Cisco", "Intel", "Oracle", "IBM", "GitHub", "Stripe",
    "Figma", "Slack", "Zoom", "Notion",
]

FALLBACK_JOB_TYPES = ["Full-time", "Contract", "Part-time"]

SALARY_RANGES = {
    "developer": (80000, 180000),
    "engineer": (90000, 200000),
    "manager": (100000, 250000),
    "analyst": (70000, 150000),
    "designer": (75000, 160000),
}
DEFAULT_SALARY_RANGE = (60000, 120000)

MIN_FALLBACK_JOBS = 20
MAX_FALLBACK_JOBS = 50


def generate_fallback_jobs(query: str, country_code: str,
                           rng: Optional[random.Random] = None) -> List[CanonicalJob]:
    """Build 20-50 placeholder jobs for ``query`` located in ``country_code``."""

    rng = rng or random.Random()
    table = COUNTRY_TABLES.get(country_code.lower())
    cities = [city.title() for city in table.cities[:10]] if table else ["Remote"]
    country_name = country_display_name(country_code)
    now = datetime.now(timezone.utc)

    jobs: List[CanonicalJob] = []
    for index in range(rng.randint(MIN_FALLBACK_JOBS, MAX_FALLBACK_JOBS)):
        company = rng.choice(FALLBACK_COMPANIES)
        city = rng.choice(cities)
        location = f"{city}, {country_name}" if table else city

        jobs.append(
            CanonicalJob(
                title=f"{query} - Level {rng.randint(1, 3)}",
                company=company,
                location=location,
                city=city if table else None,
                country=country_name if table else None,
                description=f"{query} position at {company}. We are looking for experienced professionals...",
                min_salary=80000 + rng.randint(0, 100000),
                max_salary=150000 + rng.randint(0, 100000),
                salary_period="YEARLY",
                job_type=rng.choice(FALLBACK_JOB_TYPES),
                posted_date=now - timedelta(seconds=rng.randint(0, 30 * 24 * 3600)),
                external_apply_url=f"https://{FALLBACK_DOMAIN}/jobs/{index}",
                external_id=f"fallback_{uuid.uuid4().hex[:12]}_{index}",
                source_label="Fallback",
                is_remote=False,
            )
        )

    return jobs


def fallback_salary_estimate(job_title: str) -> Dict[str, Any]:
    """Rough salary band keyed on the first matching role keyword."""

    keyword = job_title.lower()
    low, high = next(
        (band for role, band in SALARY_RANGES.items() if role in keyword),
        DEFAULT_SALARY_RANGE,
    )
    return {
        "job_title": job_title,
        "min_salary": low,
        "max_salary": high,
        "salary_period": "YEARLY",
        "currency": "USD",
        "source_label": "Fallback",
    }
