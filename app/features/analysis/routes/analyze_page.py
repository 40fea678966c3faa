from fastapi import APIRouter, Depends, Response

from app.features.analysis.schemas.analysis import AnalyzePageRequest
from app.features.analysis.services.worker.analysis_worker import WorkerContext, get_worker_context, run_analysis
from app.platform.config import settings
from app.platform.response import CORS_HEADERS, api_response

router = APIRouter(prefix=settings.FUNCTIONS_PREFIX, tags=["functions"])


@router.options("/analyze-page", include_in_schema=False)
def analyze_page_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/analyze-page")
def analyze_page(body: AnalyzePageRequest, context: WorkerContext = Depends(get_worker_context)):
    """
    Run one analysis inline and return its summary.

    Declared sync so the blocking browser work runs in the threadpool.
    Failures come back as ``{success: false, error, timestamp}`` through the
    exception handlers after the analysis has been marked ``error``.
    """
    body.require("url", "analysisId")
    outcome = run_analysis(context, body.url, body.userId, body.analysisId)
    return api_response(data=outcome.to_response())
