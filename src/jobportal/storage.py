"""JSON-file persistence for the authentication token and user record."""
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .log import get_logger

log = get_logger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class CredentialStore:
    """Persist the token and the user profile across process restarts.

    The store is a plain key/value file. It performs no validation of what it
    holds; :class:`~jobportal.session.SessionManager` is its only writer.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable credential file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            log.warning("Ignoring credential file %s: expected an object", self.path)
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, indent=2, sort_keys=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, self.path)

    def get_token(self) -> Optional[str]:
        token = self._read().get(TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def get_user(self) -> Optional[Dict[str, Any]]:
        user = self._read().get(USER_KEY)
        if not isinstance(user, dict):
            return None
        return copy.deepcopy(user)

    def is_authenticated(self) -> bool:
        data = self._read()
        return bool(data.get(TOKEN_KEY)) and isinstance(data.get(USER_KEY), dict)

    def set_auth(self, user: Dict[str, Any], token: str) -> None:
        """Write both values in one replace so readers never see half a login."""

        self._write({TOKEN_KEY: token, USER_KEY: user})

    def clear_auth(self) -> None:
        if self.path.exists():
            self.path.unlink()
