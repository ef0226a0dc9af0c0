# sitesnap/jobs.py
"""
In-memory job registry with one single-consumer progress channel per job.

A job's channel drops events while nobody listens; once a subscriber
attaches it buffers events until they are read. The registry entry goes away
as soon as the terminal event has been read or the subscriber disconnects,
whichever happens first.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from .config import Settings, settings as default_settings
from .errors import AlreadySubscribed, JobNotFound, validate_url
from .models import EVENT_TO_JOB_STATUS, CaptureResult, EventStatus, JobSnapshot, JobStatus, ProgressEvent

log = logging.getLogger("sitesnap.jobs")


class ProgressChannel:
    def __init__(self):
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self._attached = asyncio.Event()
        self._subscribed = False
        self._released = False
        self._closed = False

    @property
    def attached(self) -> bool:
        return self._subscribed and not self._released

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    def attach(self):
        if self._subscribed:
            raise AlreadySubscribed("A subscriber is already attached to this job")
        self._subscribed = True
        self._attached.set()

    async def wait_attached(self, timeout: float) -> bool:
        if self._attached.is_set():
            return True
        try:
            await asyncio.wait_for(self._attached.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def publish(self, event: ProgressEvent) -> bool:
        """Queue the event for the subscriber. Returns False when it was dropped."""
        if not self.attached or self._closed:
            return False
        self._queue.put_nowait(event)
        if event.terminal:
            self._closed = True
        return True

    async def receive(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """Next event, or None if nothing arrived within `timeout` seconds."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def release(self):
        self._released = True
        while not self._queue.empty():
            self._queue.get_nowait()


class Job:
    def __init__(self, job_id: str, url: str):
        self.job_id = job_id
        self.url = url
        self.created_at = datetime.now(timezone.utc)
        self.status = JobStatus.PENDING
        self.progress = 0
        self.message = "Queued"
        self.result: Optional[CaptureResult] = None
        self.error: Optional[str] = None
        self.channel = ProgressChannel()

    @property
    def terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def emit(self, event: ProgressEvent):
        """Apply the event to the job and hand it to the channel."""
        if self.terminal:
            raise RuntimeError(f"job {self.job_id} already finished")
        if not event.terminal and event.progress < self.progress:
            raise ValueError(f"progress went backwards ({self.progress} -> {event.progress})")

        self.status = EVENT_TO_JOB_STATUS[event.status]
        self.progress = event.progress
        self.message = event.message
        if event.result is not None:
            self.result = event.result
        if self.status == JobStatus.FAILED:
            self.error = event.message
        self.channel.publish(event)

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            job_id=self.job_id,
            url=self.url,
            created_at=self.created_at.isoformat(),
            status=self.status,
            progress=self.progress,
            message=self.message,
            subscribed=self.channel.subscribed,
            result=self.result,
            error=self.error,
        )


class Subscription:
    """The one consumer of a job's progress channel."""

    def __init__(self, registry: "JobRegistry", job: Job):
        self._registry = registry
        self.job = job
        self._finished = False

    @property
    def job_id(self) -> str:
        return self.job.job_id

    async def next_event(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        if self._finished:
            raise RuntimeError("subscription already closed")
        event = await self.job.channel.receive(timeout)
        if event is not None and event.terminal:
            self.close()
        return event

    def close(self):
        if self._finished:
            return
        self._finished = True
        self.job.channel.release()
        self._registry.retire(self.job_id)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._finished:
            raise StopAsyncIteration
        return await self.next_event()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class JobRegistry:
    """Owns the live jobs and the tasks running them."""

    def __init__(self, controller, settings: Settings = default_settings):
        self.controller = controller
        self.settings = settings
        self._jobs: Dict[str, Job] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def _new_id(self) -> str:
        job_id = uuid4().hex
        while job_id in self._jobs or job_id in self._tasks:
            job_id = uuid4().hex
        return job_id

    def submit(self, url) -> str:
        """Create a job for `url`, start it, and return its id without waiting."""
        url = validate_url(url)
        job = Job(self._new_id(), url)
        self._jobs[job.job_id] = job
        self._tasks[job.job_id] = asyncio.create_task(self._run(job), name=f"capture-{job.job_id}")
        log.info("job %s submitted for %s", job.job_id, url)
        return job.job_id

    async def _run(self, job: Job):
        try:
            if not await job.channel.wait_attached(self.settings.subscribe_grace_s):
                log.info("job %s has no subscriber, running without one", job.job_id)
            await self.controller.run(job)
        except Exception:
            log.exception("job %s crashed", job.job_id)
            if not job.terminal:
                job.emit(ProgressEvent(status=EventStatus.ERROR, progress=0, message="Capture failed: internal error"))
        finally:
            self._tasks.pop(job.job_id, None)
            # nobody will ever read the terminal event
            if not job.channel.attached:
                self.retire(job.job_id)

    def subscribe(self, job_id: str) -> Subscription:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(f"job {job_id} not found")
        job.channel.attach()
        return Subscription(self, job)

    def retire(self, job_id: str):
        self._jobs.pop(job_id, None)

    def get(self, job_id: str) -> JobSnapshot:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(f"job {job_id} not found")
        return job.snapshot()

    def jobs(self) -> List[JobSnapshot]:
        return [job.snapshot() for job in self._jobs.values()]

    async def wait(self, job_id: str):
        """Wait for the task running `job_id` to finish, if it still runs."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)

    async def shutdown(self):
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._jobs.clear()
