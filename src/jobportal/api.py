"""Thin client for the job-board REST backend.

The client is synchronous and stateless apart from its
``requests.Session``: it turns HTTP responses into model objects or typed
errors and leaves retries, timeouts on the event loop, and local state to the
synchronizers. The bearer token is pulled from ``token_provider`` on every
call so it always reflects the current session.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

import requests

from .applications import Application
from .errors import AuthExpiredError, BackendError, ValidationError
from .interviews import Interview
from .listing import Job, JobFilters
from .log import get_logger
from .profile import ROLES, normalise_profile
from .sync import Page

log = get_logger(__name__)

M = TypeVar("M")

TokenProvider = Callable[[], Optional[str]]


def _expect_list(value: Any, what: str) -> List[Any]:
    if not isinstance(value, list):
        raise ValidationError(f"Expected {what} to be a list, got {type(value).__name__}")
    return value


def _parse_many(entries: List[Any], parser: Callable[[Any], M], what: str) -> List[M]:
    try:
        return [parser(entry) for entry in entries]
    except ValidationError:
        raise
    except (TypeError, AttributeError, KeyError, ValueError) as exc:
        raise ValidationError(f"Malformed {what} entry: {exc}") from exc


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class BackendClient:
    """Call the backend endpoints used by the candidate and recruiter clients."""

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("A backend base URL is required")
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()

    # transport ---------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Mapping[str, Any]] = None,
        authenticated: Optional[bool] = True,
    ) -> Any:
        """Send one request.

        ``authenticated`` is ``True`` when a token is required, ``None`` when
        it is sent only if available, and ``False`` for anonymous calls. A 401
        on a call that carried a token raises :class:`AuthExpiredError`.
        """

        headers = {"Content-Type": "application/json"}
        token = self.token_provider() if self.token_provider and authenticated is not False else None
        if authenticated and not token:
            raise AuthExpiredError("No authentication token available")
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=dict(params) if params else None,
                json=dict(payload) if payload is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise BackendError(f"{method} {path} timed out") from exc
        except requests.RequestException as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = data.get("message") if isinstance(data, dict) else None
            message = message or f"{method} {path} returned HTTP {response.status_code}"
            if response.status_code == 401 and token:
                raise AuthExpiredError(message)
            log.debug("%s %s -> %s: %s", method, path, response.status_code, message)
            raise BackendError(message, status_code=response.status_code)

        if data is None:
            raise ValidationError(f"{method} {path} returned a non-JSON body")
        return data

    # authentication ------------------------------------------------------------

    @staticmethod
    def _check_role(role: str) -> str:
        if role not in ROLES:
            raise ValueError(f"Unknown role {role!r}; expected one of {', '.join(ROLES)}")
        return role

    def login(self, role: str, email: str, password: str) -> Tuple[Dict[str, Any], str]:
        """Return ``(profile, token)`` for valid credentials."""

        role = self._check_role(role)
        data = self._request(
            "POST",
            f"/auth/{role}/login",
            payload={"email": email, "password": password},
            authenticated=False,
        )
        return self.parse_login(data, role)

    @staticmethod
    def parse_login(data: Any, role: str) -> Tuple[Dict[str, Any], str]:
        if not isinstance(data, dict):
            raise ValidationError("Login response must be an object")
        token = data.get("token")
        user = (data.get("data") or {}).get(role) if isinstance(data.get("data"), dict) else None
        if not token or not isinstance(user, dict):
            raise ValidationError("Login response is missing the token or user record")
        return normalise_profile(user, role=role), token

    def get_profile(self, role: str) -> Dict[str, Any]:
        role = self._check_role(role)
        data = self._request("GET", f"/auth/{role}/me")
        user = (data.get("data") or {}).get(role) if isinstance(data, dict) else None
        if not isinstance(user, dict):
            raise ValidationError("Profile response is missing the user record")
        return normalise_profile(user, role=role)

    def update_profile(self, role: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Send profile edits; returns the stored record as the backend now has it."""

        role = self._check_role(role)
        data = self._request("PUT", f"/auth/{role}/profile", payload=changes)
        user = (data.get("data") or {}).get(role) if isinstance(data, dict) else None
        if not isinstance(user, dict):
            raise ValidationError("Profile update response is missing the user record")
        return normalise_profile(user, role=role)

    # jobs ----------------------------------------------------------------------

    def get_jobs(self, filters: Optional[JobFilters] = None, *, page: int = 1, limit: int = 10) -> Page[Job]:
        params: Dict[str, Any] = dict((filters or JobFilters()).to_params())
        params["page"] = page
        params["limit"] = limit
        data = self._request("GET", "/jobs", params=params, authenticated=None)
        return self.parse_job_page(data, page)

    @staticmethod
    def parse_job_page(data: Any, page: int = 1) -> Page[Job]:
        """Accept both the paginated object and a bare list of jobs."""

        if isinstance(data, list):
            jobs = _parse_many(data, Job.from_dict, "job")
            return Page(items=jobs, page=page, total_pages=page, total=len(jobs))
        if not isinstance(data, dict):
            raise ValidationError("Job listing response must be an object or a list")
        jobs = _parse_many(_expect_list(data.get("jobs", []), "jobs"), Job.from_dict, "job")
        current = _positive_int(data.get("currentPage"), page)
        return Page(
            items=jobs,
            page=current,
            total_pages=_positive_int(data.get("totalPages"), 1),
            total=_positive_int(data.get("totalJobs"), len(jobs)),
        )

    def get_job(self, job_id: str) -> Job:
        data = self._request("GET", f"/jobs/{job_id}", authenticated=None)
        if isinstance(data, dict) and isinstance(data.get("job"), dict):
            data = data["job"]
        return Job.from_dict(data)

    def get_saved_jobs(self) -> List[Job]:
        data = self._request("GET", "/jobs/saved")
        if isinstance(data, dict):
            data = data.get("savedJobs", data.get("jobs"))
        return _parse_many(_expect_list(data, "saved jobs"), Job.from_dict, "saved job")

    def save_job(self, job_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/jobs/{job_id}/save")

    def unsave_job(self, job_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/jobs/{job_id}/unsave")

    def apply_job(self, job_id: str, details: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", f"/jobs/{job_id}/apply", payload=details or {})

    # applications & interviews ---------------------------------------------------

    def get_applications(
        self, *, status: Optional[str] = None, page: int = 1, limit: int = 50
    ) -> Page[Application]:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        data = self._request("GET", "/jobs/applications", params=params)
        return self.parse_application_page(data, page)

    @staticmethod
    def parse_application_page(data: Any, page: int = 1) -> Page[Application]:
        """Applications plus the server's per-status counts in ``meta["stats"]``."""

        if isinstance(data, list):
            applications = _parse_many(data, Application.from_dict, "application")
            return Page(items=applications, page=page, total_pages=page, total=len(applications))
        if not isinstance(data, dict):
            raise ValidationError("Applications response must be an object or a list")
        entries = _expect_list(data.get("applications", []), "applications")
        applications = _parse_many(entries, Application.from_dict, "application")
        stats: Dict[str, int] = {}
        raw_stats = data.get("stats")
        if isinstance(raw_stats, dict):
            stats = {str(key): value for key, value in raw_stats.items() if isinstance(value, int)}
        return Page(
            items=applications,
            page=_positive_int(data.get("currentPage"), page),
            total_pages=_positive_int(data.get("totalPages"), 1),
            total=_positive_int(data.get("totalApplications"), len(applications)),
            meta={"stats": stats},
        )

    def get_candidate_interviews(self, *, status: Optional[str] = None) -> List[Interview]:
        params = {"status": status} if status else None
        data = self._request("GET", "/interviews/candidate", params=params)
        if isinstance(data, dict):
            data = data.get("interviews", [])
        return _parse_many(_expect_list(data, "interviews"), Interview.from_dict, "interview")

    def update_interview_notes(self, interview_id: str, notes: str) -> Optional[Interview]:
        data = self._request("PUT", f"/interviews/{interview_id}", payload={"candidateNotes": notes})
        interview = data.get("interview") if isinstance(data, dict) else None
        if not isinstance(interview, dict):
            return None
        return Interview.from_dict(interview)
