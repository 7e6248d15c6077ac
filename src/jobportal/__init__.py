"""Jobportal – candidate and recruiter client core for the job board."""

from .api import BackendClient
from .applications import Application, ApplicationsSynchronizer, summarise
from .config import Settings, load_settings
from .errors import (
    AuthExpiredError,
    AuthPersistError,
    BackendError,
    FetchError,
    JobPortalError,
    MutationError,
    SessionError,
    ValidationError,
)
from .interviews import Interview, InterviewNotes, InterviewsSynchronizer
from .job_board import JobBoardSynchronizer
from .listing import Job, JobFilters, browse, filter_jobs, sort_jobs
from .navigation import Navigator
from .notifications import Notice, Notifier
from .portal import DashboardSummary, Portal
from .profile import Session
from .route_guard import RouteDecision, evaluate_route, resume_path
from .saved_jobs import SavedJobsSynchronizer
from .session import SessionManager
from .status import StatusProjection, project_status
from .storage import CredentialStore
from .sync import CollectionSynchronizer, Page, RequestState

__all__ = [
    "BackendClient",
    "Application",
    "ApplicationsSynchronizer",
    "summarise",
    "Settings",
    "load_settings",
    "JobPortalError",
    "SessionError",
    "AuthPersistError",
    "AuthExpiredError",
    "BackendError",
    "FetchError",
    "ValidationError",
    "MutationError",
    "Interview",
    "InterviewNotes",
    "InterviewsSynchronizer",
    "JobBoardSynchronizer",
    "Job",
    "JobFilters",
    "browse",
    "filter_jobs",
    "sort_jobs",
    "Navigator",
    "Notice",
    "Notifier",
    "DashboardSummary",
    "Portal",
    "Session",
    "RouteDecision",
    "evaluate_route",
    "resume_path",
    "SavedJobsSynchronizer",
    "SessionManager",
    "StatusProjection",
    "project_status",
    "CredentialStore",
    "CollectionSynchronizer",
    "Page",
    "RequestState",
]
