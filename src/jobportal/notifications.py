"""Single non-blocking channel for user-visible messages."""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, List

from .log import get_logger

log = get_logger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    created_at: datetime = field(default_factory=datetime.now)


class Notifier:
    """Collect notices and fan them out to subscribers.

    Delivery never blocks the caller: when an event loop is running the
    subscribers are scheduled with ``call_soon``, and a failing subscriber is
    logged and skipped.
    """

    def __init__(self, *, history: int = 50) -> None:
        self.history: Deque[Notice] = deque(maxlen=history)
        self._subscribers: List[Callable[[Notice], None]] = []

    def subscribe(self, callback: Callable[[Notice], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self.history.append(notice)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for callback in list(self._subscribers):
            if loop is not None:
                loop.call_soon(self._deliver, callback, notice)
            else:
                self._deliver(callback, notice)
        return notice

    def info(self, message: str) -> Notice:
        return self.notify(INFO, message)

    def success(self, message: str) -> Notice:
        return self.notify(SUCCESS, message)

    def error(self, message: str) -> Notice:
        return self.notify(ERROR, message)

    @staticmethod
    def _deliver(callback: Callable[[Notice], None], notice: Notice) -> None:
        try:
            callback(notice)
        except Exception:
            log.exception("Notification subscriber failed for %r", notice.message)

    def latest(self, level: str | None = None) -> Notice | None:
        for notice in reversed(self.history):
            if level is None or notice.level == level:
                return notice
        return None
