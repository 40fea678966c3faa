from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from app.features.analysis.models.analysis import AnalysisStatus
from app.features.analysis.models.analysis_factor import FactorPhase
from app.platform.schemas import FunctionRequest


class AnalyzePageRequest(FunctionRequest):
    url: Optional[str] = None
    userId: Optional[str] = None
    analysisId: Optional[str] = None


class CreateAnalysisRequest(FunctionRequest):
    url: Optional[str] = None
    userId: Optional[str] = None
    dispatch: bool = False  # queue the run on Celery right away


class AnalysisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    url: str
    status: AnalysisStatus
    page_title: Optional[str] = None
    page_description: Optional[str] = None
    overall_score: Optional[int] = None
    error_details: Optional[str] = None
    framework_version: Optional[str] = None
    analysis_duration: Optional[int] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ProgressEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    analysis_id: str
    stage: str
    progress_percent: int
    message: Optional[str] = None
    educational_content: Optional[str] = None
    created_at: Optional[datetime] = None


class FactorResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    factor_id: str
    factor_name: str
    pillar: str
    phase: FactorPhase
    score: int
    confidence: int
    weight: float
    evidence: List[str] = []
    recommendations: List[str] = []
    processing_time_ms: int = 0
