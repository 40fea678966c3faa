from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.analysis.schemas.analysis import AnalysisOut
from app.features.analysis.services.analysis_service import list_user_analyses
from app.features.billing.schemas.usage import UsageRecordOut
from app.features.billing.services.tier_manager import get_usage_analytics, get_user_tier_info
from app.features.users.schemas.user import UserInitRequest, UserOut
from app.features.users.services.user_service import initialize_user
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/users", tags=["users"])


@router.post("")
async def initialize_user_route(body: UserInitRequest, db: AsyncSession = Depends(get_db)):
    body.require("userId", "email")
    user, created = await initialize_user(db, body.userId, body.email)
    return api_response(
        data={"user": UserOut.model_validate(user), "created": created},
        message="User initialized" if created else "User already exists",
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@router.get("/{user_id}/tier")
async def get_tier_route(user_id: str, db: AsyncSession = Depends(get_db)):
    info = await get_user_tier_info(db, user_id)
    return api_response(data=info)


@router.get("/{user_id}/analyses")
async def list_user_analyses_route(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    analyses, total = await list_user_analyses(db, user_id, limit, offset)
    return api_response(data={
        "analyses": [AnalysisOut.model_validate(a) for a in analyses],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@router.get("/{user_id}/usage")
async def get_usage_route(
    user_id: str,
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    usage = await get_usage_analytics(db, user_id, days)
    usage["records"] = [UsageRecordOut.model_validate(r) for r in usage["records"]]
    return api_response(data=usage)
