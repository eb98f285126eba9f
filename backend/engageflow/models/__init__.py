from engageflow.db.session import Base
from .job import Job, JobKind, JobStatus, TERMINAL_JOB_STATUSES, ACTIVE_JOB_STATUSES
from .engagement import (
    EngagementItem, EngagementStatus, TERMINAL_STATUSES, REVIEW_ACTIONABLE_STATUSES,
    is_review_actionable
)
from .channel import DiscoveredChannel
from .analytics import SearchAnalyticsRecord
