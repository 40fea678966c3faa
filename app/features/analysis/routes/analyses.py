from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.analysis.schemas.analysis import (
    AnalysisOut,
    CreateAnalysisRequest,
    FactorResultOut,
    ProgressEventOut,
)
from app.features.analysis.services.analysis_service import (
    create_analysis,
    delete_analysis,
    get_analysis,
    list_factors,
    list_progress,
)
from app.platform.db.session import get_db
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/analyses", tags=["analyses"])


@router.post("")
async def create_analysis_route(body: CreateAnalysisRequest, db: AsyncSession = Depends(get_db)):
    body.require("url", "userId")
    analysis, access = await create_analysis(db, body.url, body.userId)

    queued = False
    if body.dispatch:
        from app.features.analysis.workers.tasks import run_analysis_task

        run_analysis_task.delay(analysis.id, analysis.url, analysis.user_id)
        queued = True
        logger.info(f"Queued analysis {analysis.id}")

    return api_response(
        data={
            "analysisId": analysis.id,
            "analysis": AnalysisOut.model_validate(analysis),
            "queued": queued,
            "tier": access.tier,
            "remaining_analyses": access.remaining_analyses,
        },
        message="Analysis created",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{analysis_id}")
async def get_analysis_route(analysis_id: str, db: AsyncSession = Depends(get_db)):
    analysis = await get_analysis(db, analysis_id)
    return api_response(data={"analysis": AnalysisOut.model_validate(analysis)})


@router.get("/{analysis_id}/progress")
async def get_progress_route(analysis_id: str, db: AsyncSession = Depends(get_db)):
    events = await list_progress(db, analysis_id)
    return api_response(data={
        "analysisId": analysis_id,
        "progress": [ProgressEventOut.model_validate(e) for e in events],
    })


@router.get("/{analysis_id}/factors")
async def get_factors_route(analysis_id: str, db: AsyncSession = Depends(get_db)):
    factors = await list_factors(db, analysis_id)
    return api_response(data={
        "analysisId": analysis_id,
        "factors": [FactorResultOut.model_validate(f) for f in factors],
    })


@router.delete("/{analysis_id}")
async def delete_analysis_route(analysis_id: str, db: AsyncSession = Depends(get_db)):
    await delete_analysis(db, analysis_id)
    return api_response(data={"analysisId": analysis_id}, message="Analysis deleted")
