from sqlalchemy import Column, String, Integer, DateTime, JSON, Index, Text, CheckConstraint
from sqlalchemy import Uuid
from elakbay.lib.database import Base
import uuid
from datetime import datetime


class AnalyticsEvent(Base):
    """
    Append-only analytics event written by the tracking pipeline.
    Page views (including content and profile views), searches and filter usage.
    """
    __tablename__ = 'analytics_events'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    session_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=True)
    event_name = Column(String(50), nullable=False)
    page_path = Column(Text, nullable=True)
    landing_path = Column(Text, nullable=True)
    search_query = Column(Text, nullable=True)
    search_scope = Column(String(50), nullable=True)
    search_result_count = Column(Integer, nullable=True)
    filters = Column(JSON, nullable=True)
    destination_id = Column(String(36), nullable=True)
    product_id = Column(String(36), nullable=True)
    # 'metadata' is reserved on declarative classes
    event_metadata = Column('metadata', JSON, nullable=True)

    __table_args__ = (
        Index('ix_analytics_events_created_at', 'created_at'),
        Index('ix_analytics_events_event_name', 'event_name'),
        Index('ix_analytics_events_session_id', 'session_id'),
        Index('ix_analytics_events_user_id', 'user_id'),
        CheckConstraint(
            "event_name IN ('page_view', 'search_performed', 'filter_used')",
            name='ck_analytics_events_event_name',
        ),
    )
