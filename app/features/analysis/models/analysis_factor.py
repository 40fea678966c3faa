import enum

from sqlalchemy import JSON, Column, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.platform.db.base import AppendOnlyModel


class FactorPhase(enum.Enum):
    instant = "instant"
    background = "background"


class FactorResult(AppendOnlyModel):
    """One scored dimension of a page."""
    __tablename__ = "analysis_factors"

    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis = relationship("Analysis", back_populates="factors")

    factor_id = Column(String(20), nullable=False)  # e.g. "AI.1.2"
    factor_name = Column(String(255), nullable=False)
    pillar = Column(String(50), nullable=False)
    phase = Column(Enum(FactorPhase), default=FactorPhase.instant, nullable=False)

    score = Column(Integer, nullable=False)  # 0-100
    confidence = Column(Integer, nullable=False)  # 0-100
    weight = Column(Float, default=1.0, nullable=False)

    # Ordered lists of strings
    evidence = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)

    processing_time_ms = Column(Integer, nullable=False, default=0)
