import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Boolean, Float, Enum, Index
from sqlalchemy.sql import func
from engageflow.db.session import Base


class EngagementStatus(str, enum.Enum):
    DISCOVERED = "discovered"
    ANALYZING = "analyzing"
    DRAFT_READY = "draft_ready"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    EngagementStatus.REJECTED,
    EngagementStatus.PUBLISHED,
    EngagementStatus.FAILED,
})

# draft_ready and in_review are interchangeable for approve / reject
REVIEW_ACTIONABLE_STATUSES = frozenset({
    EngagementStatus.DRAFT_READY,
    EngagementStatus.IN_REVIEW,
})


def is_review_actionable(status: EngagementStatus) -> bool:
    """True when an item may be approved or rejected (single or batch)"""
    return status in REVIEW_ACTIONABLE_STATUSES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EngagementItem(Base):
    """A discovered post moving through analysis, drafting, review and publishing"""
    __tablename__ = "engagement_items"

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String, nullable=False, default="global", index=True)

    # Source reference
    source_post_id = Column(String, nullable=False, unique=True)
    community = Column(String, nullable=False, index=True)  # subreddit or equivalent
    source_url = Column(String)

    # Content
    title = Column(String, nullable=False)
    body = Column(Text)
    author = Column(String)
    matched_keyword = Column(String)
    source_score = Column(Integer)
    source_created_at = Column(DateTime(timezone=True))

    # Scoring
    relevance_score = Column(Float)  # 0-10
    is_recommended = Column(Boolean, nullable=False, default=False)
    analysis = Column(JSON)  # {"rationale": ..., "opportunity_type": ..., ...}
    low_relevance = Column(Boolean, nullable=False, default=False)

    # Drafts; edited_draft supersedes generated_draft for display and publish
    generated_draft = Column(Text)
    edited_draft = Column(Text)

    # Workflow
    status = Column(
        Enum(EngagementStatus, native_enum=False, values_callable=lambda e: [m.value for m in e], length=16),
        nullable=False,
        default=EngagementStatus.DISCOVERED,
    )
    assigned_account_id = Column(String)
    reviewer_id = Column(String)
    reviewer_notes = Column(Text)
    reviewed_at = Column(DateTime(timezone=True))

    # Publishing
    publish_attempted_at = Column(DateTime(timezone=True))
    published_at = Column(DateTime(timezone=True))
    published_reference_id = Column(String)
    publish_error = Column(Text)
    published_score = Column(Integer)
    reply_count = Column(Integer)

    # Optimistic concurrency token, bumped on every write
    version = Column(Integer, nullable=False, default=1)

    discovered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_engagement_items_scope_status", "scope", "status"),
        Index("ix_engagement_items_discovered", "discovered_at", "id"),
    )

    @property
    def current_draft(self):
        """The text a reviewer sees and publish sends"""
        return self.edited_draft or self.generated_draft

    def __repr__(self) -> str:
        return f"<EngagementItem {self.id} {self.status} v{self.version}>"
