from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from app.platform.db.base import AppendOnlyModel


class UsageRecord(AppendOnlyModel):
    """Per-run usage row written when an analysis reaches a terminal state."""
    __tablename__ = "usage_analytics"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)

    tier = Column(String(50), nullable=False)
    analysis_type = Column(String(50), nullable=False, default="instant")
    processing_time_ms = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False)
