"""Candidate interviews and the notes the candidate may attach to them."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .errors import ValidationError
from .listing import parse_timestamp
from .log import get_logger
from .status import INTERVIEW, StatusProjection, project_status
from .sync import CollectionSynchronizer, Page

log = get_logger(__name__)

INTERVIEW_TYPES = ("video", "phone", "in-person")


def _ref(value: Any) -> Optional[str]:
    """Populated references arrive as objects, bare ones as ids."""

    if isinstance(value, Mapping):
        value = value.get("_id", value.get("id"))
    return str(value) if value else None


@dataclass(frozen=True)
class InterviewNotes:
    candidate_notes: str = ""
    recruiter_notes: str = ""


@dataclass(frozen=True)
class Interview:
    id: str
    title: str
    type: str = "video"
    status: str = "scheduled"
    scheduled_at: Optional[datetime] = None
    job_ref: Optional[str] = None
    recruiter_ref: Optional[str] = None
    notes: InterviewNotes = field(default_factory=InterviewNotes)
    duration: Optional[int] = None
    meeting_link: Optional[str] = None
    location: Optional[str] = None
    job_title: Optional[str] = None

    @property
    def projection(self) -> StatusProjection:
        return project_status(self.status, INTERVIEW)

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        if self.scheduled_at is None:
            return False
        return self.scheduled_at > (now or datetime.now(timezone.utc))

    def with_candidate_notes(self, text: str) -> "Interview":
        return replace(self, notes=replace(self.notes, candidate_notes=text))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Interview":
        if not isinstance(data, Mapping):
            raise ValidationError(f"Expected an interview object, got {type(data).__name__}")
        interview_id = data.get("_id", data.get("id"))
        if not interview_id:
            raise ValidationError("Interview payload is missing an id")
        notes = data.get("notes") or {}
        if not isinstance(notes, Mapping):
            raise ValidationError("Interview notes must be an object")
        job = data.get("job", data.get("jobRef"))
        duration = data.get("duration")
        return cls(
            id=str(interview_id),
            title=data.get("title") or "",
            type=data.get("type") or "video",
            status=data.get("status") or "scheduled",
            scheduled_at=parse_timestamp(data.get("scheduledDateTime", data.get("scheduled_at"))),
            job_ref=_ref(job),
            recruiter_ref=_ref(data.get("recruiter", data.get("recruiterRef"))),
            notes=InterviewNotes(
                candidate_notes=notes.get("candidateNotes") or "",
                recruiter_notes=notes.get("recruiterNotes") or "",
            ),
            duration=int(duration) if isinstance(duration, (int, float)) else None,
            meeting_link=data.get("meetingLink"),
            location=data.get("location") if isinstance(data.get("location"), str) else None,
            job_title=job.get("title") if isinstance(job, Mapping) else None,
        )


class InterviewsSynchronizer(CollectionSynchronizer[Interview]):
    """Interviews the candidate takes part in.

    The status is owned by the backend. The only local write is the
    candidate's notes, applied from the server's response once it confirms.
    """

    name = "interviews"

    def key_of(self, item: Interview) -> str:
        return item.id

    def _fetch(self, page: int, filters: Dict[str, Any]) -> Page[Interview]:
        status = filters.get("status")
        interviews = self.client.get_candidate_interviews(status=status if status != "all" else None)
        return Page(items=interviews, total=len(interviews))

    def upcoming(self, now: Optional[datetime] = None) -> List[Interview]:
        pending = [item for item in self.items if item.is_upcoming(now)]
        return sorted(pending, key=lambda item: item.scheduled_at)

    def counts(self) -> Dict[str, int]:
        summary: Dict[str, int] = {}
        for interview in self.items:
            summary[interview.status] = summary.get(interview.status, 0) + 1
        return summary

    async def update_notes(self, interview_id: str, text: str) -> bool:
        """Store ``text`` as the candidate's notes for one interview."""

        interview_id = str(interview_id)
        ok, result = await self._pessimistic(
            f"notes:{interview_id}",
            lambda: self.client.update_interview_notes(interview_id, text),
            "Saving interview notes",
        )
        if not ok:
            return False

        self.notifier.success("Notes saved successfully")
        if isinstance(result, Interview):
            self._confirm(f"notes:{interview_id}", lambda: self._replace(result))
            self._replace(result)
        else:
            log.debug("Notes response for interview %s had no record; reloading", interview_id)
            await self.refresh()
        return True

    def _replace(self, interview: Interview) -> None:
        self.items = [interview if item.id == interview.id else item for item in self.items]
