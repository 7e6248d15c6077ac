"""Owner of the in-memory session and its persisted credentials."""
from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Union

from .errors import AuthPersistError, SessionError
from .log import get_logger
from .notifications import Notifier
from .profile import Session
from .storage import CredentialStore

log = get_logger(__name__)

SessionListener = Callable[[Optional[Session]], None]


class SessionManager:
    """Hold the current :class:`Session` and keep it in sync with the store.

    ``loading`` stays ``True`` until :meth:`restore` has run; route decisions
    made before that point must render a placeholder.
    """

    def __init__(self, store: CredentialStore, *, notifier: Optional[Notifier] = None) -> None:
        self.store = store
        self.notifier = notifier
        self.loading = True
        self._session: Optional[Session] = None
        self._restored = False
        self._listeners: List[SessionListener] = []

    # lifecycle -----------------------------------------------------------

    def restore(self) -> Optional[Session]:
        """Derive the session from the credential store. Runs once."""

        if self._restored:
            raise SessionError("restore() already ran for this session manager")
        self._restored = True
        try:
            token = self.store.get_token()
            user = self.store.get_user()
            if token and user:
                try:
                    self._session = Session.from_dict(user, token)
                except (TypeError, ValueError) as exc:
                    log.warning("Discarding unusable stored credentials: %s", exc)
                    self._session = None
            else:
                self._session = None
        finally:
            self.loading = False
        if self._session:
            log.info("Restored %s session for %s", self._session.role, self._session.email)
        self._emit()
        return self._session

    init = restore

    def teardown(self) -> None:
        """Forget in-memory state without touching the persisted credentials."""

        self._session = None
        self._listeners.clear()

    # queries ---------------------------------------------------------------

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def token(self) -> Optional[str]:
        return self._session.auth_token if self._session else None

    def role_of(self) -> Optional[str]:
        return self._session.role if self._session else None

    def is_role(self, role: str) -> bool:
        return self.role_of() == role

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    # mutations -------------------------------------------------------------

    def login(self, profile: Union[Session, Mapping[str, Any]], token: str) -> Session:
        """Persist the credentials, then make them the current session."""

        if isinstance(profile, Session):
            record = profile.to_dict()
        else:
            record = dict(profile)
        session = Session.from_dict(record, token)
        self._persist(session)
        self._session = session
        self.loading = False
        log.info("Signed in %s as %s", session.email, session.role)
        self._emit()
        return session

    def logout(self) -> None:
        try:
            self.store.clear_auth()
        except OSError as exc:
            log.error("Could not clear stored credentials: %s", exc)
        if self._session:
            log.info("Signed out %s", self._session.email)
        self._session = None
        self._emit()

    def update_profile(self, partial: Mapping[str, Any]) -> Session:
        """Merge ``partial`` into the current session and persist the result."""

        current = self._session
        if current is None:
            raise SessionError("update_profile() called without an active session")
        updated = current.merged(partial)
        self._persist(updated)
        self._session = updated
        self._emit()
        return updated

    def expire(self) -> None:
        """Handle a token the backend no longer accepts."""

        log.warning("Backend rejected the session token; signing out")
        self.logout()
        if self.notifier is not None:
            self.notifier.error("Your session has expired. Please log in again.")

    def _persist(self, session: Session) -> None:
        try:
            self.store.set_auth(session.to_dict(), session.auth_token)
        except (OSError, TypeError, ValueError) as exc:
            log.error("Could not persist credentials to %s: %s", self.store.path, exc)
            raise AuthPersistError(f"Could not save credentials: {exc}") from exc

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception:
                log.exception("Session listener failed")
