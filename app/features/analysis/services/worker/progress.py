from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.features.analysis.models.analysis_progress import ProgressEvent
from app.platform.logger import get_logger
from app.platform.utils.clock import utcnow

logger = get_logger(__name__)

Publisher = Callable[[str, Dict], bool]


@dataclass(frozen=True)
class ProgressStage:
    stage: str
    percent: int
    message: str
    educational_content: str


INITIALIZATION = ProgressStage(
    "initialization", 10,
    "Starting analysis...",
    "Launching a secure browser environment to load the page the way an AI crawler would.",
)
DATA_EXTRACTION = ProgressStage(
    "data_extraction", 30,
    "Extracting page data...",
    "Reading the title and meta description that AI search engines use to summarise a page.",
)
FACTOR_ANALYSIS = ProgressStage(
    "factor_analysis", 60,
    "Analyzing factors...",
    "Scoring HTTPS, title, meta description and author credibility signals.",
)
COMPLETION = ProgressStage(
    "completion", 100,
    "Analysis complete!",
    "Your AI Search Mastery results are ready.",
)

# Every run walks this schedule in order; failures stop it early.
PROGRESS_SCHEDULE = (INITIALIZATION, DATA_EXTRACTION, FACTOR_ANALYSIS, COMPLETION)


class ProgressRecorder:
    """
    Appends ProgressEvent rows for one analysis.

    Percentages never go down for a given recorder. Each event is written in
    its own short transaction; a failed insert is logged and the run goes on.
    """

    def __init__(self, session_factory, analysis_id: str, publisher: Optional[Publisher] = None):
        self.session_factory = session_factory
        self.analysis_id = analysis_id
        self.publisher = publisher
        self.last_percent = 0

    def emit(self, stage: ProgressStage) -> bool:
        return self._record(stage.stage, stage.percent, stage.message, stage.educational_content)

    def emit_error(self, message: str) -> bool:
        # Stays at the last reached percentage so the sequence remains non-decreasing
        return self._record(
            "error",
            self.last_percent,
            f"Analysis failed: {message}",
            "The analysis stopped before finishing. Check the URL and try again.",
        )

    def _record(self, stage: str, percent: int, message: str, educational_content: str) -> bool:
        if percent < self.last_percent:
            raise ValueError(
                f"Progress for {self.analysis_id} cannot go from {self.last_percent}% to {percent}%"
            )
        self.last_percent = percent

        event = ProgressEvent(
            analysis_id=self.analysis_id,
            stage=stage,
            progress_percent=percent,
            message=message,
            educational_content=educational_content,
            created_at=utcnow(),
        )

        stored = True
        db = self.session_factory()
        try:
            db.add(event)
            db.commit()
            logger.info(f"[{self.analysis_id}] Progress: {percent}% - {stage}")
        except SQLAlchemyError as e:
            db.rollback()
            stored = False
            logger.error(f"[{self.analysis_id}] Failed to insert progress '{stage}': {e}")
        finally:
            db.close()

        if self.publisher:
            self.publisher(self.analysis_id, {
                "stage": stage,
                "progress_percent": percent,
                "message": message,
                "educational_content": educational_content,
            })
        return stored
