"""Centralized job normalization agent."""

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Mapping, NamedTuple, Optional, Tuple

from dateutil import parser
from pydantic import BaseModel, Field, field_validator

from job_ingest.utils.logger import setup_logger

logger = setup_logger(__name__)

FALLBACK_DOMAIN = "example.com"
UNKNOWN_COMPANY = "Unknown Company"

SourceLabel = Literal["API", "Fallback"]


class CanonicalJob(BaseModel):
    """Standardized job schema with validation"""

    title: str = "Untitled"
    company: str = UNKNOWN_COMPANY
    location: str = "Remote"
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = ""
    min_salary: Optional[float] = None
    max_salary: Optional[float] = None
    salary_period: str = "YEARLY"
    job_type: str = "Full-time"
    posted_date: Optional[datetime] = None
    external_apply_url: Optional[str] = None
    external_id: Optional[str] = None
    source_label: SourceLabel = "Fallback"
    is_remote: bool = False
    raw_payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v):
        """Ensure location is never empty"""
        if not v or not str(v).strip():
            return "Remote"
        return str(v).strip()

    @field_validator("external_id", mode="before")
    @classmethod
    def validate_external_id(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("min_salary", "max_salary", mode="before")
    @classmethod
    def validate_salary(cls, v):
        """Coerce numeric strings, drop anything else"""
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None


class ExtractionRule(NamedTuple):
    """One named step in a fallback chain: payload -> value or None."""

    name: str
    extract: Callable[[Mapping[str, Any]], Any]


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def field(name: str) -> ExtractionRule:
    """Rule reading a top-level payload key."""

    def extract(payload: Mapping[str, Any]) -> Any:
        value = payload.get(name)
        if isinstance(value, str):
            value = value.strip()
        return value if _present(value) else None

    return ExtractionRule(name, extract)


def string_field(name: str) -> ExtractionRule:
    """Rule reading a top-level key that only counts when it is a string."""

    def extract(payload: Mapping[str, Any]) -> Optional[str]:
        value = payload.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    return ExtractionRule(name, extract)


def first_match(rules: List[ExtractionRule], payload: Mapping[str, Any],
                accept: Callable[[Any], bool] = _present) -> Tuple[Optional[str], Any]:
    """Evaluate rules in order; return (rule name, value) of the first accepted value."""

    for rule in rules:
        value = rule.extract(payload)
        if _present(value) and accept(value):
            return rule.name, value
    return None, None


# ---------------------------------------------------------------------------
# Company name extraction
# ---------------------------------------------------------------------------

INVALID_COMPANY_PATTERNS = [
    re.compile(r"^test", re.I),
    re.compile(r"^example", re.I),
    re.compile(r"^placeholder", re.I),
    re.compile(r"^unknown", re.I),
    re.compile(r"^n/?a$", re.I),
    re.compile(r"^.{1,2}$"),
    re.compile(r"^.{50,}$"),
    re.compile(r"^\d+$"),
    re.compile(r"^(https?:|www\.)", re.I),
    re.compile(r"^confidential$", re.I),
    re.compile(r"^private$", re.I),
]

_NAME = r"[A-Z][A-Za-z0-9&.\-']*(?:\s+[A-Z][A-Za-z0-9&.\-']*)*"
TITLE_COMPANY_PATTERN = re.compile(r"(?:\b(?i:at|for|with)\b|@)\s*(" + _NAME + r")")
DESCRIPTION_COMPANY_PATTERN = re.compile(
    r"\b(?:At|About|Join|For|Working at|Company:|Employer:)\s+([A-Z][A-Za-z\s&.]+?)"
    r"(?:,|\.(?:\s|$)|\s(?:is|we|are|has|offers)\b)"
)


def is_valid_company(name: Any) -> bool:
    if not isinstance(name, str):
        return False
    name = name.strip()
    return bool(name) and not any(pattern.search(name) for pattern in INVALID_COMPANY_PATTERNS)


def _company_from_title(payload: Mapping[str, Any]) -> Optional[str]:
    title = payload.get("job_title") or payload.get("title")
    if not isinstance(title, str):
        return None
    match = TITLE_COMPANY_PATTERN.search(title)
    return match.group(1).strip() if match else None


def _company_from_description(payload: Mapping[str, Any]) -> Optional[str]:
    description = payload.get("job_description") or payload.get("description")
    if not isinstance(description, str):
        return None
    match = DESCRIPTION_COMPANY_PATTERN.search(description)
    return match.group(1).strip() if match else None


COMPANY_RULES: List[ExtractionRule] = [
    string_field(name)
    for name in (
        "employer_name",
        "company",
        "employer",
        "job_publisher",
        "employer_name_simple",
        "publisher_name",
        "hiring_company",
        "job_company",
        "business_name",
        "employer_company",
        "company_name",
    )
] + [
    ExtractionRule("title_pattern", _company_from_title),
    ExtractionRule("description_pattern", _company_from_description),
]


# ---------------------------------------------------------------------------
# Field fallback chains
# ---------------------------------------------------------------------------

FIELD_RULES: Dict[str, List[ExtractionRule]] = {
    "title": [field("job_title"), field("title")],
    "description": [field("job_description"), field("description")],
    "city": [field("job_city"), field("city")],
    "state": [field("job_state"), field("state")],
    "country": [field("job_country"), field("country")],
    "raw_location": [string_field("job_location"), string_field("location")],
    "min_salary": [field("job_min_salary"), field("min_salary"), field("minSalary")],
    "max_salary": [field("job_max_salary"), field("max_salary"), field("maxSalary")],
    "salary_period": [field("job_salary_period"), field("salary_period")],
    "job_type": [field("job_employment_type"), field("jobType"), field("employment_type")],
    "posted_date": [
        field("job_posted_at_datetime_utc"),
        field("job_posted_at_timestamp"),
        field("posted_date"),
    ],
    "apply_url": [
        string_field("job_apply_link"),
        string_field("apply_link"),
        string_field("job_url"),
        string_field("google_link"),
        string_field("link"),
    ],
    "external_id": [field("job_id"), field("id")],
    "is_remote": [field("job_is_remote"), field("is_remote")],
}

FIELD_DEFAULTS: Dict[str, Any] = {
    "title": "Untitled",
    "description": "",
    "salary_period": "YEARLY",
    "job_type": "Full-time",
}


def split_location(raw_location: str) -> Tuple[str, str, str]:
    """Split "City, State, Country" into parts; a lone token is a city."""

    parts = [part.strip() for part in raw_location.split(",") if part.strip()]
    if len(parts) >= 2:
        return ", ".join(parts[:-2]), parts[-2], parts[-1]
    if len(parts) == 1:
        return parts[0], "", ""
    return "", "", ""


def compose_location(city: Optional[str], state: Optional[str], country: Optional[str]) -> str:
    parts = [part for part in (city, state, country) if part]
    return ", ".join(parts) if parts else "Remote"


def source_label_for(apply_url: Optional[str]) -> SourceLabel:
    if apply_url and FALLBACK_DOMAIN not in apply_url:
        return "API"
    return "Fallback"


class NormalizerAgent:
    """
    Converts raw JSearch job payloads (and the loosely similar shapes other
    providers return) into CanonicalJob records.

    Every field is resolved through an ordered list of extraction rules so
    the fallback order is visible data rather than branching.
    """

    def __init__(self, field_rules: Optional[Dict[str, List[ExtractionRule]]] = None,
                 company_rules: Optional[List[ExtractionRule]] = None) -> None:
        self.field_rules = field_rules or FIELD_RULES
        self.company_rules = company_rules or COMPANY_RULES

    def normalize(self, raw_job: Optional[Mapping[str, Any]]) -> Optional[CanonicalJob]:
        """
        Normalize one raw job.

        Returns None for empty input. Payloads that are not mappings raise
        TypeError; callers decide whether to skip the record.
        """
        if not raw_job:
            return None
        if not isinstance(raw_job, Mapping):
            raise TypeError(f"Expected a mapping, got {type(raw_job).__name__}")

        city, state, country = self._extract_location(raw_job)
        location = compose_location(city, state, country)

        apply_url = self._value(raw_job, "apply_url")
        remote_flag = self._value(raw_job, "is_remote")

        return CanonicalJob(
            title=str(self._value(raw_job, "title")),
            company=self.extract_company(raw_job),
            location=location,
            city=city or None,
            state=state or None,
            country=country or None,
            description=str(self._value(raw_job, "description")),
            min_salary=self._value(raw_job, "min_salary"),
            max_salary=self._value(raw_job, "max_salary"),
            salary_period=str(self._value(raw_job, "salary_period")),
            job_type=str(self._value(raw_job, "job_type")),
            posted_date=self._parse_date(self._value(raw_job, "posted_date")),
            external_apply_url=apply_url,
            external_id=self._value(raw_job, "external_id"),
            source_label=source_label_for(apply_url),
            is_remote=bool(remote_flag) or "remote" in location.lower(),
            raw_payload=dict(raw_job),
        )

    def extract_company(self, raw_job: Mapping[str, Any]) -> str:
        rule_name, company = first_match(self.company_rules, raw_job, accept=is_valid_company)
        if company is None:
            logger.debug("No valid company name found, using fallback")
            return UNKNOWN_COMPANY

        logger.debug("Company '%s' resolved via %s", company, rule_name)
        return company.strip().strip("\"'").strip() or UNKNOWN_COMPANY

    def _value(self, raw_job: Mapping[str, Any], name: str) -> Any:
        _, value = first_match(self.field_rules.get(name, []), raw_job)
        if value is None:
            return FIELD_DEFAULTS.get(name)
        return value

    def _extract_location(self, raw_job: Mapping[str, Any]) -> Tuple[str, str, str]:
        city = self._text(raw_job, "city")
        state = self._text(raw_job, "state")
        country = self._text(raw_job, "country")

        raw_location = self._value(raw_job, "raw_location")
        if raw_location and not city and not state:
            parsed_city, parsed_state, parsed_country = split_location(raw_location)
            city = parsed_city
            state = parsed_state
            country = country or parsed_country

        return city, state, country

    def _text(self, raw_job: Mapping[str, Any], name: str) -> str:
        value = self._value(raw_job, name)
        return str(value).strip() if value is not None else ""

    def _parse_date(self, value: Any) -> Optional[datetime]:
        """Parse ISO strings, Unix timestamps or datetimes; None when unparseable"""
        if not value:
            return None

        try:
            if isinstance(value, datetime):
                return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

            if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
                return datetime.fromtimestamp(int(value), tz=timezone.utc)

            if isinstance(value, str):
                parsed = parser.isoparse(value)
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

        except (ValueError, OverflowError, OSError) as exc:
            logger.warning("Date parsing failed for '%s': %s", value, exc)

        return None


# Global instance
normalizer = NormalizerAgent()
