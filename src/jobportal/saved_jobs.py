"""The candidate's saved-jobs set, synchronized against ``/jobs/saved``."""
from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional, Union

from .listing import Job
from .sync import CollectionSynchronizer, Page


def _job_id(job: Union[Job, str]) -> str:
    return job.id if isinstance(job, Job) else str(job)


class SavedJobsSynchronizer(CollectionSynchronizer[str]):
    """Ordered set of saved job ids.

    Membership is owned by the backend. ``save`` and ``unsave`` update the set
    optimistically and restore the job's previous membership on failure.
    """

    name = "saved jobs"

    def __init__(self, client: Any, **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.jobs: Dict[str, Job] = {}

    def key_of(self, item: str) -> str:
        return item

    def _fetch(self, page: int, filters: Dict[str, Any]) -> Page[str]:
        jobs = self.client.get_saved_jobs()
        return Page(
            items=[job.id for job in jobs],
            total=len(jobs),
            meta={"jobs": {job.id: job for job in jobs}},
        )

    def _absorb_meta(self, meta: Dict[str, Any]) -> None:
        self.jobs.update(meta.get("jobs", {}))

    def _snapshot(self, key: str) -> bool:
        return key in self.items

    def _restore(self, key: str, snapshot: bool) -> None:
        self._set_member(key, snapshot)

    def _set_member(self, job_id: str, member: bool) -> None:
        if member and job_id not in self.items:
            self.items = self.items + [job_id]
        elif not member and job_id in self.items:
            self.items = [item for item in self.items if item != job_id]

    @property
    def saved_ids(self) -> FrozenSet[str]:
        return frozenset(self.items)

    def is_saved(self, job: Union[Job, str]) -> bool:
        return _job_id(job) in self.items

    def saved_jobs(self) -> list:
        """Saved jobs with known details, in saved order."""

        return [self.jobs[job_id] for job_id in self.items if job_id in self.jobs]

    def _title(self, job_id: str) -> str:
        job: Optional[Job] = self.jobs.get(job_id)
        return f'"{job.title}"' if job and job.title else f"job {job_id}"

    async def save(self, job: Union[Job, str]) -> bool:
        job_id = _job_id(job)
        if isinstance(job, Job):
            self.jobs[job_id] = job
        ok = await self._optimistic(
            job_id,
            lambda: self._set_member(job_id, True),
            lambda: self.client.save_job(job_id),
            f"Saving {self._title(job_id)}",
        )
        if ok:
            self.notifier.success(f"{self._title(job_id)} saved to your list!")
        return ok

    async def unsave(self, job: Union[Job, str]) -> bool:
        job_id = _job_id(job)
        ok = await self._optimistic(
            job_id,
            lambda: self._set_member(job_id, False),
            lambda: self.client.unsave_job(job_id),
            f"Removing {self._title(job_id)}",
        )
        if ok:
            self.notifier.info(f"Removed {self._title(job_id)} from saved jobs")
        return ok

    async def toggle(self, job: Union[Job, str]) -> bool:
        """Flip membership based on the set as the user currently sees it."""

        if self.is_saved(job):
            return await self.unsave(job)
        return await self.save(job)
