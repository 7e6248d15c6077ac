"""Composition root wiring the session, backend client and synchronizers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .api import BackendClient
from .applications import Application, ApplicationsSynchronizer
from .config import Settings
from .errors import AuthExpiredError, BackendError, FetchError, SessionError
from .interviews import Interview, InterviewsSynchronizer
from .job_board import JobBoardSynchronizer
from .log import get_logger
from .navigation import Navigator
from .notifications import Notifier
from .saved_jobs import SavedJobsSynchronizer
from .session import SessionManager
from .storage import CredentialStore

log = get_logger(__name__)

CANDIDATE_SCREENS = {
    "dashboard": "/candidate/dashboard",
    "jobs": "/candidate/jobs",
    "applications": "/candidate/applications",
    "interviews": "/candidate/interviews",
}


@dataclass
class DashboardSummary:
    """Figures shown on the candidate dashboard."""

    applications_sent: int = 0
    interviews: int = 0
    saved_jobs: int = 0
    upcoming_interviews: List[Interview] = field(default_factory=list)
    recent_applications: List[Application] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class Portal:
    """One client process: settings, session, backend and synchronized data."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[BackendClient] = None,
        store: Optional[CredentialStore] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.settings = settings
        self.notifier = notifier or Notifier()
        self.store = store or CredentialStore(settings.credentials_path)
        self.sessions = SessionManager(self.store, notifier=self.notifier)
        self.client = client or BackendClient(
            settings.api_url,
            token_provider=lambda: self.sessions.token,
            timeout=settings.timeout,
        )
        self.navigator = Navigator(self.sessions)

        common = dict(
            notifier=self.notifier,
            timeout=settings.timeout,
            on_auth_expired=self.navigator.handle_auth_expired,
        )
        self.saved_jobs = SavedJobsSynchronizer(self.client, **common)
        self.applications = ApplicationsSynchronizer(self.client, **common)
        self.interviews = InterviewsSynchronizer(self.client, **common)
        self.job_board = JobBoardSynchronizer(self.client, page_size=settings.page_size, **common)

        self.navigator.register(CANDIDATE_SCREENS["dashboard"], self.applications, self.saved_jobs, self.interviews)
        self.navigator.register(CANDIDATE_SCREENS["jobs"], self.job_board, self.saved_jobs, self.applications)
        self.navigator.register(CANDIDATE_SCREENS["applications"], self.applications)
        self.navigator.register(CANDIDATE_SCREENS["interviews"], self.interviews)

    def start(self) -> "Portal":
        self.sessions.restore()
        return self

    def close(self) -> None:
        for synchronizer in (self.saved_jobs, self.applications, self.interviews, self.job_board):
            synchronizer.cancel()
        self.sessions.teardown()

    async def sign_in(self, role: str, email: str, password: str, next_path: Optional[str] = None) -> str:
        """Log in against the backend and return the page to continue on.

        ``next_path`` replaces whatever page a login redirect remembered.
        """

        if next_path:
            self.navigator.intended_path = next_path
        profile, token = await asyncio.wait_for(
            asyncio.to_thread(self.client.login, role, email, password),
            timeout=self.settings.timeout,
        )
        self.sessions.login(profile, token)
        return self.navigator.after_login(role)

    def sign_out(self) -> None:
        for synchronizer in (self.saved_jobs, self.applications, self.interviews, self.job_board):
            synchronizer.cancel()
        self.sessions.logout()
        self.navigator.navigate("/")

    async def refresh_profile(self) -> None:
        """Merge the backend's current profile into the session."""

        role = self.sessions.role_of()
        if role is None:
            return
        try:
            profile = await asyncio.wait_for(
                asyncio.to_thread(self.client.get_profile, role),
                timeout=self.settings.timeout,
            )
        except AuthExpiredError:
            self.navigator.handle_auth_expired()
            return
        except (BackendError, FetchError, asyncio.TimeoutError) as exc:
            log.warning("Could not refresh profile: %s", exc)
            self.notifier.error("Could not refresh your profile.")
            return
        self.sessions.update_profile(profile)

    async def update_profile(self, changes: Mapping[str, Any]) -> bool:
        """Save profile edits on the backend, then merge its copy into the session.

        Raises :class:`SessionError` when nobody is signed in.
        """

        role = self.sessions.role_of()
        if role is None:
            raise SessionError("update_profile() called without an active session")
        try:
            profile = await asyncio.wait_for(
                asyncio.to_thread(self.client.update_profile, role, dict(changes)),
                timeout=self.settings.timeout,
            )
        except AuthExpiredError:
            self.navigator.handle_auth_expired()
            return False
        except (BackendError, FetchError, asyncio.TimeoutError) as exc:
            log.warning("Could not update profile: %s", exc)
            self.notifier.error("Could not update your profile.")
            return False
        self.sessions.update_profile(profile)
        self.notifier.success("Profile updated")
        return True

    async def dashboard(self) -> DashboardSummary:
        await asyncio.gather(
            self.applications.load(),
            self.saved_jobs.load(),
            self.interviews.load(),
        )
        errors = [
            f"{synchronizer.name}: {synchronizer.error}"
            for synchronizer in (self.applications, self.saved_jobs, self.interviews)
            if synchronizer.error
        ]
        return DashboardSummary(
            applications_sent=len(self.applications.items),
            interviews=sum(1 for app in self.applications.items if app.status == "interviewed"),
            saved_jobs=len(self.saved_jobs.items),
            upcoming_interviews=self.interviews.upcoming(),
            recent_applications=self.applications.recent(),
            errors=errors,
        )
