"""
Single-run analysis workflow.

    pending -> processing -> browser -> extract -> score -> completed
                                  \________ any failure ________/-> error

The caller creates the pending Analysis row; this module only moves it
through its states, records progress checkpoints and writes results.
"""
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, ContextManager, Dict, List, Optional

from app.features.analysis.schemas.factor import FactorScore, PageSnapshot
from app.features.analysis.services.browser.browser_session import browser_session
from app.features.analysis.services.extraction.page_extractor import NO_DESCRIPTION, PageExtractorService
from app.features.analysis.services.scoring.instant_factors import InstantFactorService
from app.features.analysis.services.worker.analysis_store import AnalysisStore
from app.features.analysis.services.worker.progress import (
    COMPLETION,
    DATA_EXTRACTION,
    FACTOR_ANALYSIS,
    INITIALIZATION,
    ProgressRecorder,
    Publisher,
)
from app.platform.config import settings
from app.platform.exceptions import AnalysisError, InvalidRequestError, StoreWriteError
from app.platform.logger import get_logger
from app.platform.utils.url_validator import normalize_url

logger = get_logger(__name__)


@dataclass
class WorkerContext:
    """Everything a run needs from the outside world, passed in explicitly."""
    session_factory: Callable[[], Any]
    browser_factory: Callable[[], ContextManager] = browser_session
    navigation_timeout: int = 30
    framework_version: str = "MASTERY-AI v2.1"
    publisher: Optional[Publisher] = None

    @classmethod
    def from_settings(cls) -> "WorkerContext":
        # Imported lazily so tests can build a context without a configured engine
        from app.platform.db.session import get_sync_session_factory

        publisher = None
        if settings.PUBLISH_PROGRESS_EVENTS:
            from app.features.analysis.workers.sse_publisher import publish_progress_event
            publisher = publish_progress_event

        return cls(
            session_factory=get_sync_session_factory(),
            browser_factory=partial(browser_session, settings.CHROMEDRIVER_PATH),
            navigation_timeout=settings.NAVIGATION_TIMEOUT_SECONDS,
            framework_version=settings.FRAMEWORK_VERSION,
            publisher=publisher,
        )


@dataclass
class AnalysisOutcome:
    analysis_id: str
    url: str
    overall_score: int
    page_title: str
    page_description: str
    framework_version: str
    duration_ms: int
    factors: List[FactorScore] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "message": "Analysis completed successfully",
            "analysisId": self.analysis_id,
            "overall_score": self.overall_score,
            "factorsAnalyzed": len(self.factors),
            "page_title": self.page_title,
            "page_description": self.page_description,
            "framework_version": self.framework_version,
            "analysis_duration": self.duration_ms,
        }


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _fetch_page(context: WorkerContext, url: str) -> PageSnapshot:
    with context.browser_factory() as driver:
        PageExtractorService.load_page(driver, url, context.navigation_timeout)
        return PageExtractorService.extract_page(driver, url)


def _fail(
    store: AnalysisStore,
    progress: ProgressRecorder,
    analysis_id: str,
    owner_id: str,
    message: str,
    duration_ms: int,
) -> None:
    store.mark_error(analysis_id, message, duration_ms)
    progress.emit_error(message)
    store.record_usage(analysis_id, owner_id, success=False, processing_time_ms=duration_ms)


def run_analysis(context: WorkerContext, url: str, user_id: Optional[str], analysis_id: str) -> AnalysisOutcome:
    """
    Score one URL for an existing pending Analysis.

    Every failure after the analysis has been claimed is persisted as
    ``status=error`` with a readable ``error_details`` before it is raised.

    Raises:
        InvalidRequestError: url or analysis_id missing
        AnalysisNotFoundError / AnalysisStateError: nothing is written
        AnalysisQuotaError: owner is over quota, row ends in ``error``, no run
        StoreWriteError, BrowserLaunchError, NavigationError,
        NavigationTimeoutError, ExtractionError: run ends in ``error``
        AnalysisError: any other failure, wrapped
    """
    if not url or not analysis_id:
        raise InvalidRequestError("Missing required fields: url and analysisId")
    url = normalize_url(url)

    store = AnalysisStore(context.session_factory)
    started = time.perf_counter()
    logger.info(f"[{analysis_id}] Starting analysis for {url}")

    try:
        owner_id = store.mark_processing(analysis_id, url, user_id)
    except StoreWriteError as e:
        store.mark_error(analysis_id, e.message, _elapsed_ms(started))
        raise

    progress = ProgressRecorder(context.session_factory, analysis_id, context.publisher)

    try:
        progress.emit(INITIALIZATION)

        snapshot = _fetch_page(context, url)
        logger.info(f"[{analysis_id}] Extracted title '{snapshot.title}'")
        progress.emit(DATA_EXTRACTION)

        factors = InstantFactorService.analyze(snapshot)
        overall_score = InstantFactorService.calculate_overall_score(factors)
        progress.emit(FACTOR_ANALYSIS)

        duration_ms = _elapsed_ms(started)
        store.mark_completed(
            analysis_id,
            snapshot,
            factors,
            overall_score,
            duration_ms,
            context.framework_version,
        )
    except AnalysisError as e:
        e.analysis_id = e.analysis_id or analysis_id
        logger.error(f"[{analysis_id}] {type(e).__name__}: {e.message}")
        _fail(store, progress, analysis_id, owner_id, e.message, _elapsed_ms(started))
        raise
    except Exception as e:
        logger.exception(f"[{analysis_id}] Unexpected failure")
        message = f"Unexpected error: {e}"
        _fail(store, progress, analysis_id, owner_id, message, _elapsed_ms(started))
        raise AnalysisError(message, analysis_id) from e

    progress.emit(COMPLETION)
    store.record_usage(analysis_id, owner_id, success=True, processing_time_ms=duration_ms)
    logger.info(f"[{analysis_id}] Finished in {duration_ms}ms with score {overall_score}")

    return AnalysisOutcome(
        analysis_id=analysis_id,
        url=url,
        overall_score=overall_score,
        page_title=snapshot.title,
        page_description=snapshot.description or NO_DESCRIPTION,
        framework_version=context.framework_version,
        duration_ms=duration_ms,
        factors=factors,
    )


def get_worker_context() -> WorkerContext:
    """FastAPI dependency; overridden in tests with fake browser and store."""
    return WorkerContext.from_settings()
