"""
Shared fixtures: an in-memory backend double and helpers for driving the
synchronizers through their worker threads.
"""

import asyncio
import threading
from typing import Any, Dict, List, Optional

import pytest

from jobportal.applications import Application
from jobportal.config import Settings
from jobportal.errors import AuthExpiredError
from jobportal.interviews import Interview
from jobportal.listing import Job
from jobportal.notifications import Notifier
from jobportal.portal import Portal
from jobportal.profile import normalise_profile
from jobportal.storage import CredentialStore
from jobportal.sync import Page


def make_job(
    job_id: str,
    title: str = "Engineer",
    company: str = "Acme",
    created: Optional[str] = None,
    salary: Optional[tuple] = None,
    city: Optional[str] = None,
    remote: bool = False,
    job_type: str = "full-time",
) -> Job:
    payload: Dict[str, Any] = {
        "_id": job_id,
        "title": title,
        "company": {"name": company},
        "location": {"city": city, "remote": remote},
        "type": job_type,
    }
    if created:
        payload["createdAt"] = created
    if salary:
        payload["salary"] = {"min": salary[0], "max": salary[1], "currency": "USD"}
    return Job.from_dict(payload)


CANDIDATE_RECORD = {
    "_id": "u1",
    "email": "ada@example.com",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "role": "candidate",
    "profileCompleteness": 80,
    "isEmailVerified": True,
}


class FakeClient:
    """Thread-safe stand-in for :class:`jobportal.api.BackendClient`.

    ``failures`` maps a method name, or ``(method, first_arg)``, to the
    exception that call raises. ``hold(method)`` returns an event the next
    call to ``method`` blocks on until it is set.
    """

    def __init__(self) -> None:
        self.jobs: Dict[str, Job] = {}
        self.job_list: List[Job] = []
        self.saved: List[str] = []
        self.applications: List[Application] = []
        self.stats: Dict[str, int] = {}
        self.interviews: List[Interview] = []
        self.failures: Dict[Any, Exception] = {}
        self.calls: List[tuple] = []
        self.token = "tok-123"
        self._gates: Dict[str, List[threading.Event]] = {}
        self._lock = threading.Lock()

    def hold(self, method: str) -> threading.Event:
        gate = threading.Event()
        with self._lock:
            self._gates.setdefault(method, []).append(gate)
        return gate

    def count(self, method: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call[0] == method)

    def _enter(self, method: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((method,) + args)
            gates = self._gates.get(method)
            gate = gates.pop(0) if gates else None
        if gate is not None:
            gate.wait(5)
        failure = self.failures.get((method, args[0])) if args else None
        failure = failure or self.failures.get(method)
        if failure is not None:
            raise failure

    # auth

    def login(self, role: str, email: str, password: str):
        self._enter("login", role)
        record = dict(CANDIDATE_RECORD, email=email)
        return normalise_profile(record, role=role), self.token

    def get_profile(self, role: str):
        self._enter("get_profile", role)
        return normalise_profile(dict(CANDIDATE_RECORD, profileCompleteness=95), role=role)

    def update_profile(self, role: str, changes):
        self._enter("update_profile", role)
        return normalise_profile(dict(CANDIDATE_RECORD, **changes), role=role)

    # jobs

    def get_jobs(self, criteria, *, page: int = 1, limit: int = 10) -> Page:
        self._enter("get_jobs", page)
        start = (page - 1) * limit
        total_pages = max(1, -(-len(self.job_list) // limit))
        return Page(
            items=self.job_list[start : start + limit],
            page=page,
            total_pages=total_pages,
            total=len(self.job_list),
        )

    def get_saved_jobs(self) -> List[Job]:
        # The server reads its copy when the request arrives, before any hold.
        with self._lock:
            ids = list(self.saved)
        self._enter("get_saved_jobs")
        return [self.jobs.get(job_id) or make_job(job_id) for job_id in ids]

    def save_job(self, job_id: str):
        self._enter("save_job", job_id)
        with self._lock:
            if job_id not in self.saved:
                self.saved.append(job_id)
        return {"success": True}

    def unsave_job(self, job_id: str):
        self._enter("unsave_job", job_id)
        with self._lock:
            if job_id in self.saved:
                self.saved.remove(job_id)
        return {"success": True}

    def apply_job(self, job_id: str, details=None):
        self._enter("apply_job", job_id)
        record = {
            "id": f"app-{job_id}",
            "jobId": job_id,
            "company": "Acme",
            "position": "Engineer",
            "status": "applied",
            "appliedDate": "2024-03-01T10:00:00Z",
        }
        with self._lock:
            self.applications.append(Application.from_dict(record))
        return {"success": True, "application": record}

    def get_applications(self, *, status: Optional[str] = None, page: int = 1, limit: int = 50) -> Page:
        self._enter("get_applications", status)
        with self._lock:
            apps = [app for app in self.applications if status is None or app.status == status]
        start = (page - 1) * limit
        return Page(
            items=apps[start : start + limit],
            page=page,
            total_pages=max(1, -(-len(apps) // limit)),
            total=len(apps),
            meta={"stats": self.stats},
        )

    def get_candidate_interviews(self, *, status: Optional[str] = None):
        with self._lock:
            interviews = [item for item in self.interviews if status is None or item.status == status]
        self._enter("get_candidate_interviews", status)
        return interviews

    def update_interview_notes(self, interview_id: str, notes: str):
        self._enter("update_interview_notes", interview_id)
        for index, interview in enumerate(self.interviews):
            if interview.id == interview_id:
                updated = interview.with_candidate_notes(notes)
                self.interviews[index] = updated
                return updated
        return None


async def wait_for_calls(client: FakeClient, method: str, count: int = 1) -> None:
    """Yield to the loop until ``count`` calls to ``method`` have started."""
    for _ in range(500):
        if client.count(method) >= count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"{method} was not called {count} time(s)")


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "credentials.json")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_url="http://backend.test/api",
        timeout=2.0,
        credentials_path=tmp_path / "credentials.json",
        page_size=2,
    )


@pytest.fixture
def portal(settings, client, store, notifier):
    return Portal(settings, client=client, store=store, notifier=notifier).start()


@pytest.fixture
def expired():
    return AuthExpiredError("token rejected")
