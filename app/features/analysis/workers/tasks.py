from typing import Any, Dict, Optional

from app.features.analysis.services.worker.analysis_worker import WorkerContext, run_analysis
from app.platform.celery_app import celery_app
from app.platform.exceptions import AnalysisError
from app.platform.logger import get_logger

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    name="app.features.analysis.workers.tasks.run_analysis_task",
    max_retries=0,
)
def run_analysis_task(self, analysis_id: str, url: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Queue-driven entry point for one analysis run.

    The workflow persists its own failures, so the task reports them in its
    result instead of asking Celery to retry.
    """
    logger.info(f"[{analysis_id}] Task {self.request.id} picked up {url}")
    try:
        outcome = run_analysis(WorkerContext.from_settings(), url, user_id, analysis_id)
    except AnalysisError as e:
        logger.error(f"[{analysis_id}] Task failed: {e.message}")
        return {"success": False, "analysisId": analysis_id, "error": e.message}

    return {"success": True, **outcome.to_response()}
