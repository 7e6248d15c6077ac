"""Translate backend status enums into display labels, colours and icons."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

APPLICATION = "application"
INTERVIEW = "interview"

APPLICATION_STATUSES = ("applied", "under-review", "interviewed", "hired", "rejected")
INTERVIEW_STATUSES = ("scheduled", "rescheduled", "completed", "cancelled", "no-show")
TERMINAL_APPLICATION_STATUSES = frozenset({"hired", "rejected"})


@dataclass(frozen=True)
class StatusProjection:
    """UI-facing view of a raw status.

    ``rank`` orders statuses along the pipeline for dashboards and filters;
    ``terminal`` marks statuses that will not change again.
    """

    label: str
    color_class: str
    icon_kind: str
    rank: int = 0
    terminal: bool = False


_BLUE = "bg-blue-100 text-blue-800"
_YELLOW = "bg-yellow-100 text-yellow-800"
_GREEN = "bg-green-100 text-green-800"
_RED = "bg-red-100 text-red-800"
_GRAY = "bg-gray-100 text-gray-800"

_APPLICATION_TABLE: Dict[str, StatusProjection] = {
    "applied": StatusProjection("Applied", _BLUE, "clock", rank=0),
    "under-review": StatusProjection("Interviewing", _YELLOW, "eye", rank=1),
    "interviewed": StatusProjection("Interviewing", _YELLOW, "eye", rank=2),
    "hired": StatusProjection("Offer", _GREEN, "check-circle", rank=3, terminal=True),
    "rejected": StatusProjection("Rejected", _RED, "x-circle", rank=3, terminal=True),
}
_APPLICATION_DEFAULT = _APPLICATION_TABLE["applied"]

_INTERVIEW_TABLE: Dict[str, StatusProjection] = {
    "scheduled": StatusProjection("Scheduled", _BLUE, "calendar", rank=0),
    "rescheduled": StatusProjection("Rescheduled", _YELLOW, "alert-circle", rank=0),
    "completed": StatusProjection("Completed", _GREEN, "check-circle", rank=1, terminal=True),
    "cancelled": StatusProjection("Cancelled", _RED, "x-circle", rank=1, terminal=True),
    "no-show": StatusProjection("No show", _GRAY, "x-circle", rank=1, terminal=True),
}
_INTERVIEW_DEFAULT = StatusProjection("Scheduled", _GRAY, "calendar", rank=0)

_TABLES = {
    APPLICATION: (_APPLICATION_TABLE, _APPLICATION_DEFAULT),
    INTERVIEW: (_INTERVIEW_TABLE, _INTERVIEW_DEFAULT),
}


def project_status(raw_status: Optional[str], domain: str) -> StatusProjection:
    """Return the projection for ``raw_status``; unknown values get the domain default."""

    try:
        table, default = _TABLES[domain]
    except KeyError:
        raise ValueError(f"Unknown status domain {domain!r}") from None
    if not isinstance(raw_status, str):
        return default
    return table.get(raw_status.strip().lower(), default)


def is_terminal(raw_status: Optional[str], domain: str = APPLICATION) -> bool:
    return project_status(raw_status, domain).terminal
