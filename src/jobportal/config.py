"""Runtime settings read from the environment (and an optional ``.env`` file)."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .log import get_logger

log = get_logger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_CREDENTIALS = Path("jobportal_credentials.json")
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 10


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _float_env(key: str, default: float) -> float:
    raw = get_env(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric %s=%r", key, raw)
        return default
    return value if value > 0 else default


def _int_env(key: str, default: int) -> int:
    raw = get_env(key)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r", key, raw)
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """Connection and persistence options for one client process.

    Attributes:
        api_url: Base URL of the backend REST API, without a trailing slash.
        timeout: Upper bound, in seconds, for any single backend call.
        credentials_path: JSON file backing the credential store.
        page_size: Number of jobs requested per listing page.
    """

    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    credentials_path: Path = DEFAULT_CREDENTIALS
    page_size: int = DEFAULT_PAGE_SIZE

    def override(
        self,
        *,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        credentials_path: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> "Settings":
        """Return a copy with every non-``None`` value replaced."""

        changes = {}
        if api_url:
            changes["api_url"] = api_url.rstrip("/")
        if timeout is not None and timeout > 0:
            changes["timeout"] = float(timeout)
        if credentials_path:
            changes["credentials_path"] = Path(credentials_path)
        if page_size is not None and page_size > 0:
            changes["page_size"] = page_size
        return replace(self, **changes)


def load_settings(*, dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    credentials = get_env("JOBPORTAL_CREDENTIALS")
    return Settings(
        api_url=(get_env("JOBPORTAL_API_URL") or DEFAULT_API_URL).rstrip("/"),
        timeout=_float_env("JOBPORTAL_TIMEOUT", DEFAULT_TIMEOUT),
        credentials_path=Path(credentials) if credentials else DEFAULT_CREDENTIALS,
        page_size=_int_env("JOBPORTAL_PAGE_SIZE", DEFAULT_PAGE_SIZE),
    )
