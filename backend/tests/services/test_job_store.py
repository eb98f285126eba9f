import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import update

from engageflow.core.exceptions import ConflictError, JobNotFoundError
from engageflow.models.job import Job, JobKind, JobStatus
from engageflow.services.jobs.store import ABANDONED_JOB_ERROR


@pytest.mark.unit
class TestJobStore:
    """Job record lifecycle and the single-active-job rule."""

    def test_create_job_starts_pending(self, job_store):
        job = job_store.create_job(JobKind.CONTENT_DISCOVERY, "global", {"limit": 5})

        assert job.status == JobStatus.PENDING
        assert job.progress == 0
        assert job.result_count == 0
        assert job.parameters == {"limit": 5}
        assert job_store.get(job.job_id).job_id == job.job_id

    def test_second_active_job_same_kind_and_scope_conflicts(self, job_store):
        job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")

        with pytest.raises(ConflictError):
            job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")

    def test_other_kind_or_scope_may_run_alongside(self, job_store):
        job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")

        job_store.create_job(JobKind.CHANNEL_DISCOVERY, "global")
        job_store.create_job(JobKind.CONTENT_DISCOVERY, "brand-42")

        assert len(job_store.list_recent()) == 3

    def test_new_job_allowed_once_previous_is_terminal(self, job_store):
        first = job_store.create_job(JobKind.ANALYTICS_SYNC, "global")
        job_store.fail(first.job_id, "boom")

        second = job_store.create_job(JobKind.ANALYTICS_SYNC, "global")

        assert second.job_id != first.job_id
        assert job_store.get_latest(JobKind.ANALYTICS_SYNC, "global").job_id == second.job_id

    def test_get_unknown_job_raises(self, job_store):
        with pytest.raises(JobNotFoundError):
            job_store.get("does-not-exist")

    def test_progress_never_moves_backwards(self, job_store):
        job = job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")
        job_store.mark_running(job.job_id)

        job_store.update_progress(job.job_id, 60, 3)
        job_store.update_progress(job.job_id, 40, 4)

        stored = job_store.get(job.job_id)
        assert stored.progress == 60
        assert stored.result_count == 4

    def test_writes_after_completion_are_ignored(self, job_store):
        job = job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")
        job_store.mark_running(job.job_id)
        assert job_store.complete(job.job_id, 7, 1)

        assert job_store.update_progress(job.job_id, 50, 1) is False
        assert job_store.fail(job.job_id, "late failure") is False
        assert job_store.mark_running(job.job_id) is False

        stored = job_store.get(job.job_id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.progress == 100
        assert stored.result_count == 7
        assert stored.skipped_count == 1
        assert stored.error is None

    def test_fail_records_error_message(self, job_store):
        job = job_store.create_job(JobKind.CHANNEL_DISCOVERY, "global")

        job_store.fail(job.job_id, "AdapterError: quota exceeded")

        stored = job_store.get(job.job_id)
        assert stored.status == JobStatus.FAILED
        assert stored.error == "AdapterError: quota exceeded"
        assert stored.completed_at is not None

    def test_expire_stale_fails_only_old_active_jobs(self, job_store, db_session):
        old = job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")
        fresh = job_store.create_job(JobKind.CHANNEL_DISCOVERY, "global")
        finished = job_store.create_job(JobKind.ANALYTICS_SYNC, "global")
        job_store.complete(finished.job_id, 1)

        two_days_ago = datetime.now(timezone.utc) - timedelta(days=2)
        db_session.execute(
            update(Job).where(Job.job_id.in_([old.job_id, finished.job_id])).values(created_at=two_days_ago)
        )
        db_session.commit()

        assert job_store.expire_stale(86400) == 1

        assert job_store.get(old.job_id).status == JobStatus.FAILED
        assert job_store.get(old.job_id).error == ABANDONED_JOB_ERROR
        assert job_store.get(fresh.job_id).status == JobStatus.PENDING
        assert job_store.get(finished.job_id).status == JobStatus.COMPLETED

        # the expired slot is free again
        job_store.create_job(JobKind.CONTENT_DISCOVERY, "global")

    def test_list_recent_filters_and_orders_newest_first(self, job_store):
        a = job_store.create_job(JobKind.CONTENT_DISCOVERY, "a")
        b = job_store.create_job(JobKind.CONTENT_DISCOVERY, "b")
        job_store.create_job(JobKind.CHANNEL_DISCOVERY, "a")

        recent = job_store.list_recent(kind=JobKind.CONTENT_DISCOVERY)
        assert [job.job_id for job in recent] == [b.job_id, a.job_id]

        assert len(job_store.list_recent(scope="a")) == 2
        assert len(job_store.list_recent(limit=1)) == 1
