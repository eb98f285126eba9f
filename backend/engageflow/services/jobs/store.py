"""
Job Record Store

Persists Job rows and enforces the job lifecycle at the database:
a partial unique index allows a single pending/running job per (kind, scope),
and every write is a conditional UPDATE that only touches non-terminal rows,
so a late update from a racing runner can never resurrect a finished job.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from engageflow.core.exceptions import ConflictError, JobNotFoundError
from engageflow.models.job import Job, JobKind, JobStatus, ACTIVE_JOB_STATUSES

logger = logging.getLogger(__name__)

ABANDONED_JOB_ERROR = "Job abandoned before completion"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Atomic get/set access to Job records"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create_job(self, kind: JobKind, scope: str, parameters: Optional[Dict[str, Any]] = None) -> Job:
        job = Job(
            job_id=str(uuid.uuid4()),
            kind=JobKind(kind),
            scope=scope,
            status=JobStatus.PENDING,
            progress=0,
            result_count=0,
            skipped_count=0,
            parameters=parameters or {},
        )
        with self._session_factory() as db:
            db.add(job)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConflictError(
                    f"A {JobKind(kind).value} job is already active for scope '{scope}'"
                ) from e
            db.refresh(job)

        logger.info(f"Created job {job.job_id} ({job.kind.value}, scope={scope})")
        return job

    def get(self, job_id: str) -> Job:
        with self._session_factory() as db:
            job = db.scalars(select(Job).where(Job.job_id == job_id)).first()
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def get_latest(self, kind: JobKind, scope: str) -> Optional[Job]:
        with self._session_factory() as db:
            return db.scalars(
                select(Job)
                .where(Job.kind == JobKind(kind), Job.scope == scope)
                .order_by(Job.id.desc())
                .limit(1)
            ).first()

    def list_recent(self, kind: Optional[JobKind] = None, scope: Optional[str] = None, limit: int = 20) -> List[Job]:
        stmt = select(Job)
        if kind is not None:
            stmt = stmt.where(Job.kind == JobKind(kind))
        if scope is not None:
            stmt = stmt.where(Job.scope == scope)
        with self._session_factory() as db:
            return list(db.scalars(stmt.order_by(Job.id.desc()).limit(limit)))

    def mark_running(self, job_id: str) -> bool:
        return self._update_active(
            job_id,
            status=JobStatus.RUNNING,
            started_at=_now(),
            statuses=(JobStatus.PENDING,),
        )

    def update_progress(self, job_id: str, progress: int, result_count: int,
                        skipped_count: Optional[int] = None) -> bool:
        """Record progress; returns False when the job is already terminal"""
        progress = max(0, min(100, int(progress)))
        values = {
            # never move backwards, even if updates arrive out of order
            "progress": case((Job.progress < progress, progress), else_=Job.progress),
            "result_count": max(0, int(result_count)),
        }
        if skipped_count is not None:
            values["skipped_count"] = max(0, int(skipped_count))
        return self._update_active(job_id, **values)

    def complete(self, job_id: str, result_count: int, skipped_count: Optional[int] = None) -> bool:
        values = {
            "status": JobStatus.COMPLETED,
            "progress": 100,
            "result_count": max(0, int(result_count)),
            "completed_at": _now(),
        }
        if skipped_count is not None:
            values["skipped_count"] = max(0, int(skipped_count))
        updated = self._update_active(job_id, **values)
        if updated:
            logger.info(f"Job {job_id} completed with {result_count} results")
        return updated

    def fail(self, job_id: str, error: str) -> bool:
        updated = self._update_active(
            job_id,
            status=JobStatus.FAILED,
            error=error or "Unknown error",
            completed_at=_now(),
        )
        if updated:
            logger.warning(f"Job {job_id} failed: {error}")
        return updated

    def expire_stale(self, max_age_seconds: int) -> int:
        """Fail active jobs older than max_age_seconds; returns the number expired"""
        cutoff = _now() - timedelta(seconds=max_age_seconds)
        with self._session_factory() as db:
            result = db.execute(
                update(Job)
                .where(Job.status.in_(ACTIVE_JOB_STATUSES), Job.created_at < cutoff)
                .values(status=JobStatus.FAILED, error=ABANDONED_JOB_ERROR, completed_at=_now())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        if result.rowcount:
            logger.warning(f"Expired {result.rowcount} abandoned jobs older than {max_age_seconds}s")
        return result.rowcount

    def _update_active(self, job_id: str, statuses=ACTIVE_JOB_STATUSES, **values) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                update(Job)
                .where(Job.job_id == job_id, Job.status.in_(statuses))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        if result.rowcount == 0:
            logger.debug(f"Ignored write to job {job_id}: not found or not in {[s.value for s in statuses]}")
            return False
        return True
