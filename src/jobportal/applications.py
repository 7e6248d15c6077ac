"""Candidate applications: model, status summary and synchronizer."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import MutationError, ValidationError
from .listing import parse_timestamp
from .log import get_logger
from .status import APPLICATION, APPLICATION_STATUSES, StatusProjection, project_status
from .sync import CollectionSynchronizer, Page

log = get_logger(__name__)


@dataclass(frozen=True)
class Application:
    """One application as reported by ``GET /jobs/applications``.

    The status is set by the backend (recruiter actions or the pipeline);
    the client only observes it.
    """

    id: str
    job_id: str
    company: str
    position: str
    status: str = "applied"
    applied_date: Optional[datetime] = None
    location: str = ""
    salary: str = ""

    @property
    def projection(self) -> StatusProjection:
        return project_status(self.status, APPLICATION)

    @property
    def terminal(self) -> bool:
        return self.projection.terminal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Application":
        if not isinstance(data, Mapping):
            raise ValidationError(f"Expected an application object, got {type(data).__name__}")
        app_id = data.get("id", data.get("_id"))
        job_id = data.get("jobId", data.get("job_id"))
        if not app_id or not job_id:
            raise ValidationError("Application payload is missing its id or job id")
        return cls(
            id=str(app_id),
            job_id=str(job_id),
            company=data.get("company") or "Unknown Company",
            position=data.get("position") or "",
            status=data.get("status") or "applied",
            applied_date=parse_timestamp(data.get("appliedDate", data.get("applied_date"))),
            location=data.get("location") or "",
            salary=data.get("salary") or "",
        )


def summarise(applications: Iterable[Application]) -> Dict[str, int]:
    """Count applications per raw status, plus ``total``."""

    counts = Counter(app.status for app in applications)
    summary = {status: counts.get(status, 0) for status in APPLICATION_STATUSES}
    for status, count in counts.items():
        summary.setdefault(status, count)
    summary["total"] = sum(counts.values())
    return summary


class ApplicationsSynchronizer(CollectionSynchronizer[Application]):
    """The candidate's applications.

    ``apply`` is pessimistic: nothing is added locally until the backend
    confirms, and the list is then re-read so server-computed fields (status,
    dates) come from the backend.
    """

    name = "applications"

    def __init__(self, client: Any, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.stats: Dict[str, int] = {}

    def key_of(self, item: Application) -> str:
        return item.id

    def _fetch(self, page: int, filters: Dict[str, Any]) -> Page[Application]:
        status = filters.get("status")
        return self.client.get_applications(status=status if status != "all" else None, page=page)

    def _absorb_meta(self, meta: Dict[str, Any]) -> None:
        stats = meta.get("stats")
        self.stats = dict(stats) if stats else summarise(self.items)

    def find_by_job(self, job_id: str) -> Optional[Application]:
        for application in self.items:
            if application.job_id == job_id:
                return application
        return None

    def by_label(self) -> Dict[str, List[Application]]:
        """Group applications under their projected label (dashboard view)."""

        grouped: Dict[str, List[Application]] = {}
        for application in self.items:
            grouped.setdefault(application.projection.label, []).append(application)
        return grouped

    def summary(self) -> Dict[str, int]:
        return summarise(self.items)

    def recent(self, limit: int = 5) -> List[Application]:
        dated = sorted(
            self.items,
            key=lambda app: app.applied_date.timestamp() if app.applied_date else float("-inf"),
            reverse=True,
        )
        return dated[:limit]

    async def apply(self, job_id: str, details: Optional[Dict[str, Any]] = None, *, title: str = "") -> bool:
        """Submit an application for ``job_id``."""

        job_id = str(job_id)
        label = f'Applying to "{title}"' if title else f"Applying to job {job_id}"
        if self.find_by_job(job_id) is not None:
            self.mutation_error = MutationError("You have already applied to this job")
            self.notifier.info(str(self.mutation_error))
            return False

        ok, result = await self._pessimistic(
            f"apply:{job_id}",
            lambda: self.client.apply_job(job_id, details or {}),
            label,
        )
        if not ok:
            return False

        confirmed = result.get("application") if isinstance(result, Mapping) else None
        if isinstance(confirmed, Mapping):
            try:
                application = Application.from_dict(confirmed)
            except ValidationError as exc:
                log.warning("Ignoring malformed application in apply response: %s", exc)
            else:
                self._confirm(f"apply:{job_id}", lambda: self._include(application))
                self._include(application)
        self.notifier.success(f'Applied to "{title}"!' if title else "Application submitted!")
        await self.refresh()
        return True

    def _include(self, application: Application) -> None:
        if self.get(application.id) is None:
            self.items = self.items + [application]
