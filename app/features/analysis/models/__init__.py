"""
Analysis models package.
"""
from app.features.analysis.models.analysis import Analysis, AnalysisStatus
from app.features.analysis.models.analysis_progress import ProgressEvent
from app.features.analysis.models.analysis_factor import FactorResult, FactorPhase

__all__ = ["Analysis", "AnalysisStatus", "ProgressEvent", "FactorResult", "FactorPhase"]
