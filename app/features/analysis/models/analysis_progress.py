from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.platform.db.base import AppendOnlyModel


class ProgressEvent(AppendOnlyModel):
    """
    Append-only checkpoint for an analysis run.

    Rows are never updated or deleted individually; they go away with their
    Analysis through the cascading foreign key.
    """
    __tablename__ = "analysis_progress"

    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis = relationship("Analysis", back_populates="progress_events")

    stage = Column(String(100), nullable=False)
    progress_percent = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)
    educational_content = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            'progress_percent >= 0 AND progress_percent <= 100',
            name='check_progress_percent_range'
        ),
        Index('idx_analysis_progress_analysis_created', 'analysis_id', 'created_at'),
    )
