from sqlalchemy import Column, Integer, String, DateTime, Text, BigInteger
from sqlalchemy.sql import func
from engageflow.db.session import Base


class DiscoveredChannel(Base):
    """Video channels found by a channel discovery job"""
    __tablename__ = "discovered_channels"

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String, nullable=False, default="global", index=True)
    channel_id = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    custom_url = Column(String)
    thumbnail_url = Column(String)
    subscriber_count = Column(BigInteger, default=0)
    video_count = Column(Integer, default=0)
    view_count = Column(BigInteger, default=0)
    discovered_keyword = Column(String)
    discovered_at = Column(DateTime(timezone=True), server_default=func.now())
