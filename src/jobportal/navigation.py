"""Navigation state: guard evaluation, redirects and screen teardown."""
from __future__ import annotations

from typing import Dict, List, Optional

from .log import get_logger
from .route_guard import (
    ALLOWED,
    LOADING,
    RouteDecision,
    evaluate_route,
    normalise_path,
    required_role_for,
    resume_path,
)
from .session import SessionManager
from .sync import CollectionSynchronizer

log = get_logger(__name__)

MAX_REDIRECTS = 3


class Navigator:
    """Track the current path and gate every move through the route guard.

    Screens register the synchronizers they drive; leaving a screen cancels
    their loads so late responses cannot land on an unrelated view.
    """

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions
        self.current_path: Optional[str] = None
        self.intended_path: Optional[str] = None
        self.history: List[str] = []
        self._screens: Dict[str, List[CollectionSynchronizer]] = {}

    def register(self, path: str, *synchronizers: CollectionSynchronizer) -> None:
        self._screens.setdefault(normalise_path(path), []).extend(synchronizers)

    def synchronizers_for(self, path: Optional[str]) -> List[CollectionSynchronizer]:
        if path is None:
            return []
        return list(self._screens.get(normalise_path(path), []))

    def decide(self, path: str) -> RouteDecision:
        required = required_role_for(path)
        if required is None:
            return RouteDecision(ALLOWED)
        return evaluate_route(self.sessions.session, self.sessions.loading, path, required)

    def navigate(self, path: str) -> RouteDecision:
        """Move to ``path`` or wherever the guard redirects; returns the first decision."""

        path = normalise_path(path)
        first = decision = self.decide(path)
        if decision.state == LOADING:
            log.debug("Session still loading; holding navigation to %s", path)
            return decision

        target = path
        hops = 0
        while decision.is_redirect:
            if decision.intended_path:
                self.intended_path = decision.intended_path
            log.info("Redirecting %s -> %s", target, decision.redirect_to)
            target = decision.redirect_to or "/"
            hops += 1
            if hops > MAX_REDIRECTS:
                raise RuntimeError(f"Redirect loop while navigating to {path}")
            decision = self.decide(target)

        self._enter(target)
        return first

    def _enter(self, target: str) -> None:
        previous = self.current_path
        if previous is not None and previous != target:
            leaving = self.synchronizers_for(previous)
            staying = self.synchronizers_for(target)
            for synchronizer in leaving:
                if not any(synchronizer is other for other in staying):
                    synchronizer.cancel()
        self.current_path = target
        self.history.append(target)

    def after_login(self, role: str) -> str:
        """Resume the navigation a login redirect interrupted."""

        destination = resume_path(self.intended_path, role)
        self.intended_path = None
        self.navigate(destination)
        return destination

    def handle_auth_expired(self) -> None:
        """Sign out and send the user to the login for the area they were in."""

        path = self.current_path
        self.sessions.expire()
        for synchronizers in self._screens.values():
            for synchronizer in synchronizers:
                synchronizer.cancel()
        if path is not None:
            self.navigate(path)
