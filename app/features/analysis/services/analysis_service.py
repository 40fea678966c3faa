from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.analysis.models.analysis import Analysis, AnalysisStatus
from app.features.analysis.models.analysis_factor import FactorResult
from app.features.analysis.models.analysis_progress import ProgressEvent
from app.features.billing.services.tier_manager import TierAccess, validate_analysis_access
from app.platform.config import settings
from app.platform.exceptions import AccessDeniedError, AnalysisNotFoundError
from app.platform.logger import get_logger
from app.platform.utils.url_validator import validate_url

logger = get_logger(__name__)


async def create_analysis(db: AsyncSession, url: str, user_id: str) -> tuple[Analysis, TierAccess]:
    """
    Create the pending Analysis row a worker run will claim.

    The tier gate runs first, so a user over quota leaves no row behind.
    """
    normalized_url = validate_url(url)

    access = await validate_analysis_access(db, user_id)
    if not access.allowed:
        await db.commit()
        raise AccessDeniedError(access.message)

    analysis = Analysis(
        user_id=user_id,
        url=normalized_url,
        status=AnalysisStatus.pending,
        framework_version=settings.FRAMEWORK_VERSION,
    )
    db.add(analysis)
    await db.commit()
    await db.refresh(analysis)

    logger.info(f"Created analysis {analysis.id} for {normalized_url} (user {user_id})")
    return analysis, access


async def get_analysis(db: AsyncSession, analysis_id: str) -> Analysis:
    result = await db.execute(select(Analysis).where(Analysis.id == analysis_id))
    analysis = result.scalar_one_or_none()
    if not analysis:
        raise AnalysisNotFoundError(f"Analysis {analysis_id} not found", analysis_id)
    return analysis


async def list_progress(db: AsyncSession, analysis_id: str) -> List[ProgressEvent]:
    await get_analysis(db, analysis_id)
    result = await db.execute(
        select(ProgressEvent)
        .where(ProgressEvent.analysis_id == analysis_id)
        .order_by(ProgressEvent.created_at, ProgressEvent.progress_percent, ProgressEvent.id)
    )
    return list(result.scalars().all())


async def list_factors(db: AsyncSession, analysis_id: str) -> List[FactorResult]:
    await get_analysis(db, analysis_id)
    result = await db.execute(
        select(FactorResult)
        .where(FactorResult.analysis_id == analysis_id)
        .order_by(FactorResult.pillar, FactorResult.factor_id)
    )
    return list(result.scalars().all())


async def delete_analysis(db: AsyncSession, analysis_id: str) -> None:
    """Remove an analysis; progress, factor and usage rows cascade with it."""
    analysis = await get_analysis(db, analysis_id)
    await db.delete(analysis)
    await db.commit()
    logger.info(f"Deleted analysis {analysis_id}")


async def list_user_analyses(
    db: AsyncSession, user_id: str, limit: int = 20, offset: int = 0
) -> tuple[List[Analysis], int]:
    total = await db.scalar(select(func.count(Analysis.id)).where(Analysis.user_id == user_id))
    result = await db.execute(
        select(Analysis)
        .where(Analysis.user_id == user_id)
        .order_by(Analysis.created_at.desc(), Analysis.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
