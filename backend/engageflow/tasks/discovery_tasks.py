"""
Scheduled Discovery Tasks

Celery beat entry points. Each task builds its own job runner and drives the
job to completion on a private event loop, so the job row reflects the
outcome before the task returns.
"""

import asyncio
from typing import Any, Dict
import logging

from engageflow.api.deps import build_job_runner, get_job_store
from engageflow.core.celery_app import celery_app
from engageflow.core.config import settings
from engageflow.core.exceptions import AlreadyRunningError
from engageflow.models.job import JobKind, JobStatus

logger = logging.getLogger(__name__)


@celery_app.task(name="engageflow.tasks.discovery_tasks.auto_discover")
def auto_discover(scope: str = None) -> Dict[str, Any]:
    """Run a content discovery job over the configured communities and keywords"""
    scope = scope or settings.DEFAULT_JOB_SCOPE
    if not settings.DISCOVERY_COMMUNITIES or not settings.DISCOVERY_KEYWORDS:
        logger.info("Auto-discovery skipped: no communities or keywords configured")
        return {"status": "skipped", "reason": "not configured"}

    latest = get_job_store().get_latest(JobKind.CONTENT_DISCOVERY, scope)
    if latest is not None and not latest.status.is_terminal:
        logger.info(f"Auto-discovery skipped: job {latest.job_id} is still {latest.status.value}")
        return {"status": "skipped", "reason": "already running", "jobId": latest.job_id}

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        job = loop.run_until_complete(
            build_job_runner().run(JobKind.CONTENT_DISCOVERY, scope, {
                "communities": settings.DISCOVERY_COMMUNITIES,
                "keywords": settings.DISCOVERY_KEYWORDS,
                "limit": settings.DISCOVERY_LIMIT,
            })
        )
    except AlreadyRunningError as e:
        # lost the race against a manually started job
        logger.info(f"Auto-discovery skipped: {e.message}")
        return {"status": "skipped", "reason": "already running"}
    finally:
        loop.close()
        asyncio.set_event_loop(None)

    if job.status == JobStatus.FAILED:
        logger.error(f"Auto-discovery job {job.job_id} failed: {job.error}")
    return {
        "status": job.status.value,
        "jobId": job.job_id,
        "resultCount": job.result_count,
        "skippedCount": job.skipped_count,
    }


@celery_app.task(name="engageflow.tasks.discovery_tasks.expire_stale_jobs")
def expire_stale_jobs() -> Dict[str, Any]:
    expired = get_job_store().expire_stale(settings.JOB_STALE_AFTER_SECONDS)
    return {"expired": expired}
