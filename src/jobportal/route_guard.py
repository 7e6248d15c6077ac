"""Access decisions for role-protected routes.

Everything here is a pure function of the session snapshot, the loading flag
and the requested path, so callers re-evaluate on every navigation instead of
caching a decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .profile import CANDIDATE, RECRUITER, ROLES, Session

LOADING = "loading"
ALLOWED = "allowed"
DENIED = "denied"

CANDIDATE_LOGIN = "/candidate/login"
RECRUITER_LOGIN = "/recruiter/login"

ROLE_HOMES = {
    CANDIDATE: "/candidate/dashboard",
    RECRUITER: "/recruiter/dashboard",
}

# Pages inside a role area that anonymous users may still open.
PUBLIC_AREA_PAGES = frozenset(
    {
        "/candidate/login",
        "/candidate/signup",
        "/recruiter/login",
        "/recruiter/signup",
    }
)


@dataclass(frozen=True)
class RouteDecision:
    """Outcome of a guard evaluation.

    ``intended_path`` is only set for login redirects so that a successful
    login can resume the original navigation.
    """

    state: str
    redirect_to: Optional[str] = None
    intended_path: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state == ALLOWED

    @property
    def is_redirect(self) -> bool:
        return self.redirect_to is not None


def normalise_path(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0].strip()
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def _in_area(path: str, role: str) -> bool:
    root = f"/{role}"
    return path == root or path.startswith(root + "/")


def login_path_for(path: str) -> str:
    """Pick the login screen matching the area of the requested path."""

    if _in_area(normalise_path(path), RECRUITER):
        return RECRUITER_LOGIN
    return CANDIDATE_LOGIN


def role_home(role: str) -> str:
    return ROLE_HOMES.get(role, ROLE_HOMES[CANDIDATE])


def required_role_for(path: str) -> Optional[str]:
    """Return the role a path requires, or ``None`` for public pages."""

    path = normalise_path(path)
    if path in PUBLIC_AREA_PAGES:
        return None
    for role in ROLES:
        if _in_area(path, role):
            return role
    return None


def evaluate_route(
    session: Optional[Session],
    loading: bool,
    path: str,
    required_role: Optional[str] = None,
) -> RouteDecision:
    """Decide whether ``path`` may be shown to ``session``."""

    if loading:
        return RouteDecision(LOADING)

    path = normalise_path(path)
    if session is None:
        return RouteDecision(DENIED, redirect_to=login_path_for(path), intended_path=path)

    if required_role and session.role != required_role:
        # The session's own home, never the denied path.
        return RouteDecision(DENIED, redirect_to=role_home(session.role))

    return RouteDecision(ALLOWED)


def resume_path(intended_path: Optional[str], role: str) -> str:
    """Where to send a user right after logging in with ``role``."""

    if intended_path:
        path = normalise_path(intended_path)
        required = required_role_for(path)
        if path not in PUBLIC_AREA_PAGES and (required is None or required == role):
            return path
    return role_home(role)
