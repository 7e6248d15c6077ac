"""Job postings and the in-memory filter/sort engine used by the job board.

Filtering is case-insensitive and never mutates its input. Sorting relies on
Python's stable ``sorted`` so jobs with equal keys keep their incoming order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Collection, Iterable, List, Mapping, Optional, Tuple

from .errors import ValidationError

SAVED_FIRST = "saved-first"
MOST_RECENT = "most-recent"
SALARY_HIGH = "salary-high"
SALARY_LOW = "salary-low"
COMPANY_AZ = "company-az"
SORT_OPTIONS = (SAVED_FIRST, MOST_RECENT, SALARY_HIGH, SALARY_LOW, COMPANY_AZ)

JOB_TYPES = ("full-time", "part-time", "contract", "internship", "remote")


def _normalise_term(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(value.strip().lower().split())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as sent by the backend (``Z`` suffix allowed)."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Company:
    name: str = ""
    logo: Optional[str] = None


@dataclass(frozen=True)
class Location:
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    remote: bool = False

    def display(self) -> str:
        if self.city:
            tail = self.state or self.country or ""
            return f"{self.city}, {tail}".strip().rstrip(",")
        if self.remote:
            return "Remote"
        return "Not specified"


@dataclass(frozen=True)
class Salary:
    min: Optional[float] = None
    max: Optional[float] = None
    currency: str = "USD"

    def display(self) -> str:
        if self.min is not None and self.max is not None:
            return f"{self.currency} {self.min:,.0f} - {self.max:,.0f}"
        if self.min is not None:
            return f"{self.currency} {self.min:,.0f}+"
        if self.max is not None:
            return f"up to {self.currency} {self.max:,.0f}"
        return "Not disclosed"


@dataclass(frozen=True)
class Job:
    """A posting as listed by the backend."""

    id: str
    title: str
    company: Company = field(default_factory=Company)
    location: Location = field(default_factory=Location)
    salary: Salary = field(default_factory=Salary)
    type: str = ""
    skills: Tuple[str, ...] = ()
    description: str = ""
    created_at: Optional[datetime] = None
    application_deadline: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        if not isinstance(data, Mapping):
            raise ValidationError(f"Expected a job object, got {type(data).__name__}")
        job_id = data.get("_id", data.get("id"))
        if not job_id:
            raise ValidationError("Job payload is missing an id")

        company_data = data.get("company") or {}
        if isinstance(company_data, str):
            company = Company(name=company_data)
        else:
            company = Company(name=company_data.get("name") or "", logo=company_data.get("logo"))

        location_data = data.get("location") or {}
        if isinstance(location_data, str):
            location = Location(city=location_data)
        else:
            location = Location(
                city=location_data.get("city"),
                state=location_data.get("state"),
                country=location_data.get("country"),
                remote=bool(location_data.get("remote", False)),
            )

        salary_data = data.get("salary") or {}
        salary = Salary(
            min=_number(salary_data.get("min")),
            max=_number(salary_data.get("max")),
            currency=salary_data.get("currency") or "USD",
        )

        return cls(
            id=str(job_id),
            title=data.get("title") or "",
            company=company,
            location=location,
            salary=salary,
            type=data.get("type") or "",
            skills=tuple(str(skill) for skill in data.get("skills") or ()),
            description=data.get("description") or "",
            created_at=parse_timestamp(data.get("createdAt", data.get("created_at"))),
            application_deadline=parse_timestamp(
                data.get("applicationDeadline", data.get("application_deadline"))
            ),
        )


def parse_salary_range(value: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse ``"50000-80000"`` into bounds; anything else means no range."""

    if not value or value == "all":
        return None
    low, sep, high = str(value).partition("-")
    if not sep:
        return None
    lo, hi = _number(low), _number(high)
    if lo is None or hi is None:
        return None
    return lo, hi


@dataclass(frozen=True)
class JobFilters:
    """Criteria applied to a job list.

    Attributes:
        term: Free text matched against the title and company name.
        location: Substring matched against city, state or country. When it
            mentions "remote", remote jobs match as well.
        job_type: Exact job type, or ``"all"``.
        salary: Optional ``"min-max"`` range the posted salary must fall in.
    """

    term: str = ""
    location: str = ""
    job_type: str = "all"
    salary: Optional[str] = None

    def to_params(self) -> dict:
        """Query parameters understood by ``GET /jobs``."""

        params = {}
        if self.term:
            params["search"] = self.term
        if self.location:
            params["location"] = self.location
        if self.job_type and self.job_type != "all":
            params["type"] = self.job_type
        if parse_salary_range(self.salary):
            params["salary"] = self.salary
        return params


def _matches_term(job: Job, term: str) -> bool:
    if not term:
        return True
    return term in job.title.lower() or term in job.company.name.lower()


def _matches_location(job: Job, location: str) -> bool:
    if not location:
        return True
    for part in (job.location.city, job.location.state, job.location.country):
        if part and location in part.lower():
            return True
    return job.location.remote and "remote" in location


def _matches_type(job: Job, job_type: str) -> bool:
    if not job_type or job_type == "all":
        return True
    return job.type.lower() == job_type


def _matches_salary(job: Job, bounds: Optional[Tuple[float, float]]) -> bool:
    if bounds is None:
        return True
    low, high = bounds
    if job.salary.min is None or job.salary.max is None:
        return False
    return job.salary.min >= low and job.salary.max <= high


def filter_jobs(jobs: Iterable[Job], filters: JobFilters) -> List[Job]:
    term = _normalise_term(filters.term)
    location = _normalise_term(filters.location)
    job_type = _normalise_term(filters.job_type)
    bounds = parse_salary_range(filters.salary)
    return [
        job
        for job in jobs
        if _matches_term(job, term)
        and _matches_location(job, location)
        and _matches_type(job, job_type)
        and _matches_salary(job, bounds)
    ]


def _recency(job: Job) -> float:
    # Jobs without a timestamp count as the oldest.
    return job.created_at.timestamp() if job.created_at else float("-inf")


def sort_jobs(jobs: Iterable[Job], sort_by: str, saved_ids: Collection[str] = ()) -> List[Job]:
    """Return ``jobs`` ordered by one of :data:`SORT_OPTIONS`."""

    items = list(jobs)
    if sort_by == SAVED_FIRST:
        return sorted(items, key=lambda job: (job.id not in saved_ids, -_recency(job)))
    if sort_by == MOST_RECENT:
        return sorted(items, key=lambda job: -_recency(job))
    if sort_by == SALARY_HIGH:
        return sorted(items, key=lambda job: -(job.salary.max or 0))
    if sort_by == SALARY_LOW:
        return sorted(
            items,
            key=lambda job: (job.salary.min is None, job.salary.min if job.salary.min is not None else 0),
        )
    if sort_by == COMPANY_AZ:
        return sorted(items, key=lambda job: job.company.name.casefold())
    raise ValueError(f"Unknown sort option {sort_by!r}; expected one of {', '.join(SORT_OPTIONS)}")


def browse(
    jobs: Iterable[Job],
    filters: Optional[JobFilters] = None,
    sort_by: str = SAVED_FIRST,
    saved_ids: Collection[str] = (),
) -> List[Job]:
    """Filter then sort, as the job board shows its results."""

    return sort_jobs(filter_jobs(jobs, filters or JobFilters()), sort_by, saved_ids)
