from sqlalchemy import Column, Integer, String, DateTime, Date, Float, UniqueConstraint
from sqlalchemy.sql import func
from engageflow.db.session import Base


class SearchAnalyticsRecord(Base):
    """One row of search-console performance data imported by an analytics sync job"""
    __tablename__ = "search_analytics_records"

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String, nullable=False, default="global", index=True)
    query = Column(String, nullable=False)
    page = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    device = Column(String, nullable=False, default="")
    data_date = Column(Date, nullable=False)

    clicks = Column(Integer, default=0)
    impressions = Column(Integer, default=0)
    ctr = Column(Float, default=0.0)
    position = Column(Float, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("scope", "query", "page", "country", "device", "data_date",
                         name="uq_search_analytics_row"),
    )
