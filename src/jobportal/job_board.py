"""Paginated job feed behind the candidate job board."""
from __future__ import annotations

from typing import Any, Collection, Dict, List, Optional

from .listing import SAVED_FIRST, Job, JobFilters, browse
from .sync import CollectionSynchronizer, Page


class JobBoardSynchronizer(CollectionSynchronizer[Job]):
    """Jobs matching the server-side filters, one page at a time.

    ``load`` starts over from page one; ``load_more`` appends the next page
    until ``total_pages`` is reached.
    """

    name = "jobs"

    def __init__(self, client: Any, *, page_size: int = 10, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.page_size = page_size

    def key_of(self, item: Job) -> str:
        return item.id

    async def load(self, filters: Optional[JobFilters] = None, **extra: Any) -> bool:  # type: ignore[override]
        return await super().load(criteria=filters or JobFilters(), **extra)

    @property
    def criteria(self) -> JobFilters:
        return self.filters.get("criteria") or JobFilters()

    def _fetch(self, page: int, filters: Dict[str, Any]) -> Page[Job]:
        criteria = filters.get("criteria") or JobFilters()
        return self.client.get_jobs(criteria, page=page, limit=self.page_size)

    def visible(
        self,
        sort_by: str = SAVED_FIRST,
        saved_ids: Collection[str] = (),
        filters: Optional[JobFilters] = None,
    ) -> List[Job]:
        """Loaded jobs narrowed by the local filters and ordered by ``sort_by``."""

        return browse(self.items, filters or self.criteria, sort_by, saved_ids)
