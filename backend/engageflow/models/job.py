import enum

from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Enum, Index, text
from sqlalchemy.sql import func
from engageflow.db.session import Base


class JobKind(str, enum.Enum):
    CONTENT_DISCOVERY = "content_discovery"
    CHANNEL_DISCOVERY = "channel_discovery"
    ANALYTICS_SYNC = "analytics_sync"


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})
ACTIVE_JOB_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING})


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Partial index predicate shared by SQLite and PostgreSQL
_ACTIVE_PREDICATE = text("status IN ('pending', 'running')")


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String, unique=True, nullable=False, index=True)
    kind = Column(Enum(JobKind, native_enum=False, values_callable=_enum_values, length=32), nullable=False)
    scope = Column(String, nullable=False, default="global")
    status = Column(
        Enum(JobStatus, native_enum=False, values_callable=_enum_values, length=16),
        nullable=False,
        default=JobStatus.PENDING,
    )
    progress = Column(Integer, nullable=False, default=0)
    result_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    parameters = Column(JSON)
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        # At most one pending/running job per (kind, scope)
        Index(
            "uq_jobs_active_kind_scope",
            "kind",
            "scope",
            unique=True,
            sqlite_where=_ACTIVE_PREDICATE,
            postgresql_where=_ACTIVE_PREDICATE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Job {self.job_id} {self.kind} {self.status} {self.progress}%>"
