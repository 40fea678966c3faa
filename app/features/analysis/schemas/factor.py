from typing import List, Optional

from pydantic import BaseModel, Field


class FactorScore(BaseModel):
    """Result of scoring one factor, before it is persisted as a FactorResult row."""
    factor_id: str
    factor_name: str
    pillar: str
    phase: str = "instant"
    score: int = Field(ge=0, le=100)
    confidence: int = Field(ge=0, le=100)
    weight: float = 1.0
    evidence: List[str] = []
    recommendations: List[str] = []
    processing_time_ms: int = 0


class PageSnapshot(BaseModel):
    """What the worker pulled out of the loaded page."""
    url: str
    final_url: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    content: str = ""
