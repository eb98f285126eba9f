"""
Job Runner

Starts background jobs as asyncio tasks and drives them to a terminal status.
The job row is the only channel back to callers: pollers read progress,
counts and the error message from the Job Store while the task runs.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from engageflow.core.config import settings
from engageflow.core.exceptions import AlreadyRunningError, ConflictError, ValidationError
from engageflow.models.job import Job, JobKind
from engageflow.services.jobs.handlers import JobContext, JobHandler
from engageflow.services.jobs.store import JobStore

logger = logging.getLogger(__name__)


class JobRunner:
    """Runs one asyncio task per job; at most one active job per (kind, scope)"""

    def __init__(self, job_store: JobStore, handlers: Dict[JobKind, JobHandler]):
        self.job_store = job_store
        self._handlers = {JobKind(kind): handler for kind, handler in handlers.items()}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def handler_for(self, kind) -> JobHandler:
        try:
            return self._handlers[JobKind(kind)]
        except (KeyError, ValueError):
            raise ValidationError(f"Unsupported job kind: {kind}")

    async def start(self, kind, scope: Optional[str] = None,
                    parameters: Optional[Dict[str, Any]] = None) -> str:
        """Create the job and schedule it; returns the job id without waiting"""
        handler = self.handler_for(kind)
        scope = scope or settings.DEFAULT_JOB_SCOPE
        prepared = handler.prepare(parameters)

        try:
            job = self.job_store.create_job(handler.kind, scope, prepared)
        except ConflictError as e:
            raise AlreadyRunningError(handler.kind.value, scope) from e

        task = asyncio.create_task(self._execute(job, handler), name=f"job-{job.job_id}")
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _t, job_id=job.job_id: self._tasks.pop(job_id, None))
        return job.job_id

    async def run(self, kind, scope: Optional[str] = None,
                  parameters: Optional[Dict[str, Any]] = None) -> Job:
        """Start a job and wait for it to finish; used by scheduled tasks"""
        job_id = await self.start(kind, scope, parameters)
        await self.join(job_id)
        return self.job_store.get(job_id)

    async def join(self, job_id: Optional[str] = None) -> None:
        """Wait for one job (or every running job) to reach a terminal status"""
        if job_id is not None:
            task = self._tasks.get(job_id)
            tasks = [task] if task is not None else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _execute(self, job: Job, handler: JobHandler) -> None:
        job_id = job.job_id
        context = JobContext(job_id=job_id, scope=job.scope, parameters=dict(job.parameters or {}))

        processed = persisted = usable = skipped = 0
        try:
            if not self.job_store.mark_running(job_id):
                logger.warning(f"Job {job_id} is no longer pending, not running it")
                return

            expected = max(1, handler.expected_batches(context.parameters))
            logger.info(f"Job {job_id} ({job.kind.value}) started, expecting {expected} batches")

            async for batch in handler.fetch(context.parameters):
                result = await handler.persist(batch, context)
                processed += 1
                persisted += result.persisted
                usable += result.usable
                skipped += result.skipped
                # 100 is reserved for completion
                progress = min(99, processed * 100 // expected)
                self.job_store.update_progress(job_id, progress, persisted, skipped)
                logger.debug(f"Job {job_id}: batch {batch.label} -> {result.persisted} new, {result.skipped} skipped")
                await asyncio.sleep(0)
        except Exception as e:
            logger.exception(f"Job {job_id} ({job.kind.value}) failed after {processed} batches")
            self.job_store.fail(job_id, f"{type(e).__name__}: {e}")
            return

        if usable == 0 and skipped > 0:
            self.job_store.fail(job_id, f"No usable records: {skipped} skipped")
            return
        self.job_store.complete(job_id, persisted, skipped)
