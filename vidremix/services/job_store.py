"""Job registry with progress subscriptions.

One JobStore instance exists per process (see ``main.py``) and is handed to
request handlers through FastAPI dependencies. Each job id has a single
writer: the driver that owns the job's ffmpeg invocation.

Guarantees seen by readers and subscribers:
- percent never decreases over the lifetime of a job
- percent is at most 99 until the job is completed; 100 only arrives
  together with a download URL
- once a job is completed or failed its status is frozen
"""

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from vidremix.services.progress_broadcaster import ProgressBroadcaster

logger = logging.getLogger(__name__)

MAX_RUNNING_PERCENT = 99


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATES = {JobState.COMPLETED, JobState.ERROR}


@dataclass(frozen=True)
class JobStatus:
    """Snapshot of one job."""

    status: JobState = JobState.QUEUED
    percent: int = 0
    download_url: str | None = None
    error: str | None = None
    details: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> dict[str, Any]:
        """Wire format pushed to progress subscribers."""
        data: dict[str, Any] = {"percent": self.percent, "status": self.status.value}
        if self.download_url is not None:
            data["downloadUrl"] = self.download_url
        if self.error is not None:
            data["error"] = self.error
        if self.details:
            data["details"] = self.details
        return data


class JobStore:
    """In-memory map of job id to its latest JobStatus."""

    def __init__(self, broadcaster: ProgressBroadcaster[JobStatus] | None = None) -> None:
        self._jobs: dict[str, JobStatus] = {}
        self._broadcaster: ProgressBroadcaster[JobStatus] = broadcaster or ProgressBroadcaster()

    def create(self, job_id: str) -> JobStatus:
        status = JobStatus()
        self._jobs[job_id] = status
        self._broadcaster.publish(job_id, status)
        return status

    def get(self, job_id: str) -> JobStatus:
        """Latest status, or a queued placeholder for unknown ids."""
        return self._jobs.get(job_id, JobStatus())

    def update(self, job_id: str, status: JobStatus) -> JobStatus:
        """Store a new status for a job and broadcast it.

        Running/queued percentages are clamped to [previous, 99]; a completed
        status always carries 100. Updates after a terminal status are
        ignored and the frozen status is returned.
        """
        previous = self._jobs.get(job_id)
        if previous is not None and previous.is_terminal:
            logger.warning(
                f"Ignoring update for finished job {job_id} "
                f"({previous.status.value} -> {status.status.value})"
            )
            return previous

        floor = previous.percent if previous is not None else 0
        if status.status == JobState.COMPLETED:
            percent = 100
        else:
            percent = max(floor, min(MAX_RUNNING_PERCENT, max(0, status.percent)))
        stored = replace(status, percent=percent)

        self._jobs[job_id] = stored
        self._broadcaster.publish(job_id, stored)
        return stored

    def mark_running(self, job_id: str, percent: int = 0) -> JobStatus:
        return self.update(job_id, JobStatus(status=JobState.RUNNING, percent=percent))

    def mark_completed(self, job_id: str, download_url: str) -> JobStatus:
        return self.update(
            job_id, JobStatus(status=JobState.COMPLETED, percent=100, download_url=download_url)
        )

    def mark_failed(self, job_id: str, error: str, details: str | None = None) -> JobStatus:
        current = self.get(job_id)
        return self.update(
            job_id,
            JobStatus(status=JobState.ERROR, percent=current.percent, error=error, details=details),
        )

    async def subscribe(self, job_id: str) -> AsyncGenerator[JobStatus, None]:
        """Yield the current snapshot, then every update until the job ends.

        Closing the generator (client disconnect) removes only this
        subscriber; the job itself keeps running.
        """
        queue = self._broadcaster.register(job_id)
        try:
            snapshot = self.get(job_id)
            yield snapshot
            if snapshot.is_terminal:
                return
            while True:
                status = await queue.get()
                yield status
                if status.is_terminal:
                    return
        finally:
            self._broadcaster.unregister(job_id, queue)

    def subscriber_count(self, job_id: str) -> int:
        return self._broadcaster.get_subscriber_count(job_id)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
