from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from app.features.analysis.models.analysis import Analysis, AnalysisStatus
from app.features.analysis.models.analysis_factor import FactorPhase, FactorResult
from app.features.analysis.schemas.factor import FactorScore, PageSnapshot
from app.features.analysis.services.extraction.page_extractor import NO_DESCRIPTION
from app.features.billing.models.usage_analytics import UsageRecord
from app.features.billing.services.tier_manager import apply_monthly_reset, check_access, effective_tier
from app.features.users.models.user import User, UserTier
from app.platform.exceptions import (
    AnalysisNotFoundError,
    AnalysisQuotaError,
    AnalysisStateError,
    StoreWriteError,
)
from app.platform.logger import get_logger
from app.platform.utils.clock import utcnow

logger = get_logger(__name__)


class AnalysisStore:
    """
    Blocking persistence for one worker run.

    Every method opens and closes its own session so a failed write never
    leaves a half-applied transaction behind for the next step.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def mark_processing(self, analysis_id: str, url: str, user_id: Optional[str] = None) -> str:
        """
        Move a pending analysis to processing and return its owner's id.

        Raises:
            AnalysisNotFoundError: no row with this id
            AnalysisStateError: row is not pending, or belongs to another url/user
            AnalysisQuotaError: owner is over quota; the row is marked error
            StoreWriteError: the database rejected the read or the update
        """
        db = self.session_factory()
        try:
            analysis = db.get(Analysis, analysis_id)
            if analysis is None:
                raise AnalysisNotFoundError(f"Analysis {analysis_id} not found", analysis_id)
            if analysis.url != url:
                raise AnalysisStateError(
                    f"Analysis {analysis_id} was created for a different URL", analysis_id
                )
            if user_id and analysis.user_id != user_id:
                raise AnalysisStateError(
                    f"Analysis {analysis_id} belongs to a different user", analysis_id
                )
            if analysis.status != AnalysisStatus.pending:
                raise AnalysisStateError(
                    f"Analysis {analysis_id} is {analysis.status.value}, expected pending", analysis_id
                )

            owner_id = analysis.user_id
            denied = self._quota_denial(db, owner_id)
            if denied:
                db.execute(
                    update(Analysis)
                    .where(Analysis.id == analysis_id, Analysis.status == AnalysisStatus.pending)
                    .values(status=AnalysisStatus.error, error_details=denied)
                )
                db.commit()
                logger.info(f"[{analysis_id}] pending -> error: {denied}")
                raise AnalysisQuotaError(denied, analysis_id)

            result = db.execute(
                update(Analysis)
                .where(Analysis.id == analysis_id, Analysis.status == AnalysisStatus.pending)
                .values(status=AnalysisStatus.processing, started_at=utcnow())
            )
            if result.rowcount != 1:
                db.rollback()
                raise AnalysisStateError(f"Analysis {analysis_id} was claimed by another run", analysis_id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreWriteError(f"Failed to mark analysis processing: {e}", analysis_id) from e
        finally:
            db.close()

        logger.info(f"[{analysis_id}] pending -> processing")
        return owner_id

    @staticmethod
    def _quota_denial(db, user_id: str) -> Optional[str]:
        """
        Tier gate at claim time. Runs still in processing count against what
        is left; usage is only charged when a run finishes.
        """
        user = db.get(User, user_id)
        if user is None:
            return None

        access = check_access(user)
        if not access.allowed:
            return access.message
        if access.remaining_analyses is None:
            return None

        in_flight = db.scalar(
            select(func.count(Analysis.id)).where(
                Analysis.user_id == user_id, Analysis.status == AnalysisStatus.processing
            )
        )
        if in_flight >= access.remaining_analyses:
            return (
                f"Monthly limit reached: {in_flight} analyses already running "
                f"with {access.remaining_analyses} remaining. Upgrade to continue."
            )
        return None

    def mark_completed(
        self,
        analysis_id: str,
        snapshot: PageSnapshot,
        factors: List[FactorScore],
        overall_score: int,
        duration_ms: int,
        framework_version: str,
    ) -> None:
        """Write factor rows and the terminal success fields in a single transaction."""
        db = self.session_factory()
        try:
            for factor in factors:
                db.add(FactorResult(
                    analysis_id=analysis_id,
                    factor_id=factor.factor_id,
                    factor_name=factor.factor_name,
                    pillar=factor.pillar,
                    phase=FactorPhase(factor.phase),
                    score=factor.score,
                    confidence=factor.confidence,
                    weight=factor.weight,
                    evidence=list(factor.evidence),
                    recommendations=list(factor.recommendations),
                    processing_time_ms=factor.processing_time_ms,
                ))

            result = db.execute(
                update(Analysis)
                .where(Analysis.id == analysis_id, Analysis.status == AnalysisStatus.processing)
                .values(
                    status=AnalysisStatus.completed,
                    overall_score=overall_score,
                    page_title=snapshot.title,
                    page_description=snapshot.description or NO_DESCRIPTION,
                    framework_version=framework_version,
                    analysis_duration=duration_ms,
                    completed_at=utcnow(),
                )
            )
            if result.rowcount != 1:
                db.rollback()
                raise StoreWriteError(
                    f"Analysis {analysis_id} left processing before it could complete", analysis_id
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreWriteError(f"Failed to store analysis results: {e}", analysis_id) from e
        finally:
            db.close()

        logger.info(f"[{analysis_id}] processing -> completed (score {overall_score}, {len(factors)} factors)")

    def mark_error(self, analysis_id: str, details: str, duration_ms: Optional[int] = None) -> bool:
        """
        Record a failed run. Only non-terminal rows are touched, so an
        analysis that already completed is never flipped to error.
        """
        db = self.session_factory()
        try:
            result = db.execute(
                update(Analysis)
                .where(
                    Analysis.id == analysis_id,
                    Analysis.status.in_([AnalysisStatus.pending, AnalysisStatus.processing]),
                )
                .values(
                    status=AnalysisStatus.error,
                    error_details=details,
                    analysis_duration=duration_ms,
                )
            )
            db.commit()
            updated = result.rowcount == 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[{analysis_id}] Failed to persist error state: {e}")
            return False
        finally:
            db.close()

        if updated:
            logger.info(f"[{analysis_id}] -> error: {details}")
        else:
            logger.warning(f"[{analysis_id}] error state not written, analysis already terminal or missing")
        return updated

    def record_usage(
        self,
        analysis_id: str,
        user_id: str,
        success: bool,
        processing_time_ms: int,
        analysis_type: str = "instant",
    ) -> bool:
        """Insert a usage row and charge the free-tier quota for successful runs."""
        db = self.session_factory()
        try:
            user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
            if user is None:
                logger.warning(f"[{analysis_id}] Usage not recorded, user {user_id} missing")
                return False

            tier, _ = effective_tier(user)
            db.add(UsageRecord(
                user_id=user_id,
                analysis_id=analysis_id,
                tier=tier.value,
                analysis_type=analysis_type,
                processing_time_ms=processing_time_ms,
                success=success,
            ))
            if success and tier == UserTier.free:
                apply_monthly_reset(user)
                user.monthly_analyses_used = (user.monthly_analyses_used or 0) + 1
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[{analysis_id}] Failed to record usage: {e}")
            return False
        finally:
            db.close()
