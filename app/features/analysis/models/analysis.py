import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.platform.db.base import BaseModel


class AnalysisStatus(enum.Enum):
    """Analysis lifecycle: pending -> processing -> (completed | error)"""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    error = "error"


TERMINAL_STATUSES = frozenset({AnalysisStatus.completed, AnalysisStatus.error})


class Analysis(BaseModel):
    """
    One URL-scoring request.

    Created ``pending`` by the caller; the worker moves it to ``processing``
    and then exactly once to a terminal state.
    """
    __tablename__ = "analyses"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user = relationship("User", back_populates="analyses")

    url = Column(String(2048), nullable=False)

    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.pending, nullable=False, index=True)

    # Extracted page fields (set once on success)
    page_title = Column(String(512), nullable=True)
    page_description = Column(Text, nullable=True)

    overall_score = Column(Integer, nullable=True)  # 0-100, success only
    error_details = Column(Text, nullable=True)  # failure only

    framework_version = Column(String(50), nullable=True)
    analysis_duration = Column(Integer, nullable=True)  # ms

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    progress_events = relationship(
        "ProgressEvent",
        back_populates="analysis",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProgressEvent.created_at",
    )
    factors = relationship(
        "FactorResult",
        back_populates="analysis",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_analyses_user_created', 'user_id', 'created_at'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
