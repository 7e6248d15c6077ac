"""Keep a locally held collection consistent with the backend.

A synchronizer owns one collection (saved jobs, applications, interviews, the
job feed). Reads replace or extend the collection; failures keep the last good
copy. Writes come in two flavours:

* membership toggles are optimistic: the local change is applied at once and
  rolled back for that target if the backend call fails. Toggles on the same
  target are serialized, so the final state follows the last user action;
* record-creating writes are pessimistic: the collection only changes from a
  confirmed server response, and a second write for a target that already has
  one in flight is rejected.

A load that was already in flight when a write was confirmed carries the
server copy from before that write, so confirmed changes are replayed onto
such pages. Loads started afterwards are taken as they are.

Backend clients are blocking (``requests``); every call runs in a worker
thread through :func:`asyncio.to_thread` and is bounded by ``timeout``.
"""
from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from .errors import AuthExpiredError, BackendError, FetchError, MutationError, ValidationError
from .log import get_logger
from .notifications import Notifier

log = get_logger(__name__)

T = TypeVar("T")

IDLE = "idle"
PENDING = "pending"
SUCCEEDED = "succeeded"
FAILED = "failed"

_READ_ERRORS = (FetchError, BackendError)


@dataclass
class RequestState:
    """Progress of the latest write for one target.

    ``previous`` holds the local snapshot taken before an optimistic change;
    it is what gets restored when the write fails.
    """

    status: str = IDLE
    previous: Any = None
    error: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self.status == PENDING


@dataclass
class Page(Generic[T]):
    """One page of a collection as returned by the backend."""

    items: List[T]
    page: int = 1
    total_pages: int = 1
    total: Optional[int] = None
    meta: Dict[str, Any] = field(default_factory=dict)


class CollectionSynchronizer(Generic[T]):
    """Base class; subclasses implement :meth:`key_of` and :meth:`_fetch`."""

    name = "collection"

    def __init__(
        self,
        client: Any,
        *,
        notifier: Optional[Notifier] = None,
        timeout: float = 30.0,
        on_auth_expired: Optional[Callable[[], None]] = None,
    ) -> None:
        self.client = client
        self.notifier = notifier or Notifier()
        self.timeout = timeout
        self.on_auth_expired = on_auth_expired

        self.items: List[T] = []
        self.filters: Dict[str, Any] = {}
        self.loading = False
        self.loaded = False
        self.error: Optional[str] = None
        self.mutation_error: Optional[MutationError] = None
        self.page = 0
        self.total_pages = 0
        self.total: Optional[int] = None
        self.states: Dict[str, RequestState] = {}

        self._generation = 0
        self._locks: Dict[str, asyncio.Lock] = {}
        self._queued: Dict[str, int] = {}
        self._pending_changes: Dict[str, Callable[[], None]] = {}
        # key -> (generation current when the backend confirmed, change)
        self._confirmed: Dict[str, Tuple[int, Callable[[], None]]] = {}

    # hooks -------------------------------------------------------------------

    def key_of(self, item: T) -> str:
        raise NotImplementedError

    def _fetch(self, page: int, filters: Dict[str, Any]) -> Page[T]:
        """Blocking fetch of one page; runs in a worker thread."""

        raise NotImplementedError

    def _absorb_meta(self, meta: Dict[str, Any]) -> None:
        """Consume extra data delivered alongside a page."""

    def _snapshot(self, key: str) -> Any:
        raise NotImplementedError(f"{type(self).__name__} does not support optimistic updates")

    def _restore(self, key: str, snapshot: Any) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not support optimistic updates")

    # reads -------------------------------------------------------------------

    @property
    def has_more(self) -> bool:
        return self.loaded and self.page < self.total_pages

    def get(self, key: str) -> Optional[T]:
        for item in self.items:
            if self.key_of(item) == key:
                return item
        return None

    def state_of(self, key: str) -> RequestState:
        return self.states.get(key) or RequestState()

    async def load(self, **filters: Any) -> bool:
        """Fetch the first page and replace the collection with it."""

        self.filters = filters
        return await self._load_page(1, append=False)

    async def refresh(self) -> bool:
        return await self._load_page(1, append=False)

    async def load_more(self) -> bool:
        """Append the next page; a no-op once the last page was reached."""

        if not self.has_more:
            return False
        return await self._load_page(self.page + 1, append=True)

    def cancel(self) -> None:
        """Drop interest in any load in flight; its result will be discarded."""

        self._generation += 1
        self.loading = False

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        call = functools.partial(fn, *args, **kwargs)
        return await asyncio.wait_for(asyncio.to_thread(call), timeout=self.timeout)

    async def _load_page(self, page: int, *, append: bool) -> bool:
        self._generation += 1
        generation = self._generation
        self.loading = True
        filters = dict(self.filters)
        try:
            result = await self._call(self._fetch, page, filters)
        except AuthExpiredError:
            if generation == self._generation:
                self.loading = False
                self._auth_expired()
            return False
        except asyncio.TimeoutError:
            return self._load_failed(generation, f"timed out after {self.timeout:g}s")
        except ValidationError as exc:
            log.error("Malformed %s payload: %s", self.name, exc)
            return self._load_failed(generation, str(exc))
        except _READ_ERRORS as exc:
            return self._load_failed(generation, str(exc))

        if generation != self._generation:
            log.debug("Discarding stale %s page %d", self.name, page)
            return False

        self._apply_page(result, generation, append=append)
        self.loading = False
        return True

    def _apply_page(self, result: Page[T], generation: int, *, append: bool) -> None:
        incoming = list(result.items)
        if append:
            known = {self.key_of(item) for item in self.items}
            self.items = self.items + [item for item in incoming if self.key_of(item) not in known]
        else:
            self.items = incoming
            self._replay_confirmed(generation)
            # Writes still in flight win over the server copy until they resolve.
            for change in list(self._pending_changes.values()):
                change()
            self.states = {key: state for key, state in self.states.items() if state.pending}
        self.page = result.page
        self.total_pages = max(result.total_pages, result.page)
        self.total = result.total if result.total is not None else len(self.items)
        self._absorb_meta(result.meta)
        self.error = None
        self.loaded = True
        log.debug("Loaded %s page %d/%d (%d items)", self.name, self.page, self.total_pages, len(self.items))

    def _replay_confirmed(self, generation: int) -> None:
        for key, (confirmed_at, change) in list(self._confirmed.items()):
            if confirmed_at >= generation:
                # The page was requested before the backend confirmed this write.
                change()
            else:
                del self._confirmed[key]

    def _load_failed(self, generation: int, message: str) -> bool:
        if generation != self._generation:
            log.debug("Ignoring failure of stale %s load: %s", self.name, message)
            return False
        self.loading = False
        self.error = message
        log.warning("Could not load %s: %s", self.name, message)
        self.notifier.error(f"Could not load {self.name}. Please try again.")
        return False

    # writes ------------------------------------------------------------------

    async def _write(self, call: Callable[[], Any]) -> Any:
        """Run a write; backend failures and timeouts become :class:`MutationError`."""

        try:
            return await self._call(call)
        except asyncio.TimeoutError as exc:
            raise MutationError(f"timed out after {self.timeout:g}s") from exc
        except _READ_ERRORS as exc:
            raise MutationError(str(exc)) from exc

    def _confirm(self, key: str, change: Callable[[], None]) -> None:
        """Remember a confirmed local change for pages already in flight."""

        self._confirmed[key] = (self._generation, change)

    async def _optimistic(
        self,
        key: str,
        local_change: Callable[[], None],
        call: Callable[[], Any],
        label: str,
    ) -> bool:
        self._queued[key] = self._queued.get(key, 0) + 1
        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                return await self._toggle(key, local_change, call, label)
        finally:
            self._queued[key] -= 1
            if not self._queued[key]:
                del self._queued[key]
                self._locks.pop(key, None)
                if self.state_of(key).status == SUCCEEDED:
                    del self.states[key]

    async def _toggle(
        self,
        key: str,
        local_change: Callable[[], None],
        call: Callable[[], Any],
        label: str,
    ) -> bool:
        previous = self._snapshot(key)
        self.states[key] = RequestState(PENDING, previous=previous)
        self._pending_changes[key] = local_change
        local_change()
        try:
            await self._write(call)
        except AuthExpiredError:
            self._rollback(key, previous, "session expired")
            self._auth_expired()
            return False
        except MutationError as exc:
            self._rollback(key, previous, str(exc))
            self._mutation_failed(label, exc)
            return False
        finally:
            self._pending_changes.pop(key, None)
        self._confirm(key, local_change)
        self.states[key] = RequestState(SUCCEEDED)
        self.mutation_error = None
        return True

    def _rollback(self, key: str, previous: Any, message: str) -> None:
        self._restore(key, previous)
        self.states[key] = RequestState(FAILED, previous=previous, error=message)

    async def _pessimistic(self, key: str, call: Callable[[], Any], label: str) -> Tuple[bool, Any]:
        if self.state_of(key).pending:
            rejection = MutationError(f"{label} is already in progress")
            log.info("Rejected duplicate request: %s", rejection)
            self.mutation_error = rejection
            self.notifier.info(str(rejection))
            return False, None

        self.states[key] = RequestState(PENDING)
        try:
            result = await self._write(call)
        except AuthExpiredError:
            self.states[key] = RequestState(FAILED, error="session expired")
            self._auth_expired()
            return False, None
        except MutationError as exc:
            self.states[key] = RequestState(FAILED, error=str(exc))
            self._mutation_failed(label, exc)
            return False, None
        del self.states[key]
        self.mutation_error = None
        return True, result

    def _mutation_failed(self, label: str, error: MutationError) -> None:
        self.mutation_error = error
        log.warning("%s failed: %s", label, error)
        self.notifier.error(f"{label} failed. Please try again.")

    def _auth_expired(self) -> None:
        if self.on_auth_expired is not None:
            self.on_auth_expired()
        else:
            log.warning("Backend rejected the session token while syncing %s", self.name)
