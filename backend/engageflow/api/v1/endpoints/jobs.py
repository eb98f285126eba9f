from fastapi import APIRouter, Depends, Query, Request
from typing import Optional, Union

from engageflow.api.deps import get_job_runner, get_job_store
from engageflow.core.config import settings
from engageflow.core.rate_limiting import limiter, RATE_LIMITS
from engageflow.models.job import Job, JobKind
from engageflow.schemas.job import IdleResponse, JobCreate, JobResponse, JobsResponse, JobStarted
from engageflow.services.jobs.runner import JobRunner
from engageflow.services.jobs.store import JobStore

router = APIRouter()


def _to_response(job: Job) -> JobResponse:
    return JobResponse(
        jobId=job.job_id,
        kind=job.kind,
        scope=job.scope,
        status=job.status,
        progress=job.progress,
        resultCount=job.result_count,
        skippedCount=job.skipped_count,
        parameters=job.parameters,
        error=job.error,
        createdAt=job.created_at,
        startedAt=job.started_at,
        completedAt=job.completed_at
    )


@router.post("", status_code=202, response_model=JobStarted)
@limiter.limit(RATE_LIMITS["job_start"])
async def start_job(
    request: Request,
    job_in: JobCreate,
    runner: JobRunner = Depends(get_job_runner)
):
    """
    Start a background job and return its id immediately; poll GET /jobs/{jobId} for progress
    """
    job_id = await runner.start(job_in.kind, job_in.scope, job_in.parameters)
    return JobStarted(jobId=job_id, message=f"{job_in.kind.value} job started")


@router.get("", response_model=JobsResponse)
def list_jobs(
    kind: Optional[JobKind] = None,
    scope: Optional[str] = None,
    limit: int = Query(settings.RECENT_JOBS_LIMIT, ge=1, le=100),
    job_store: JobStore = Depends(get_job_store)
):
    """
    Most recent jobs first
    """
    jobs = job_store.list_recent(kind=kind, scope=scope, limit=limit)
    return JobsResponse(data=[_to_response(job) for job in jobs])


@router.get("/latest", response_model=Union[JobResponse, IdleResponse])
def get_latest_job(
    kind: JobKind,
    scope: Optional[str] = None,
    job_store: JobStore = Depends(get_job_store)
):
    """
    The newest job of a kind for a scope, or {"status": "idle"} when none has run
    """
    job = job_store.get_latest(kind, scope or settings.DEFAULT_JOB_SCOPE)
    if job is None:
        return IdleResponse()
    return _to_response(job)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    job_store: JobStore = Depends(get_job_store)
):
    return _to_response(job_store.get(job_id))
