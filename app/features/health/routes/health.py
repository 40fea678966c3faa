from fastapi import APIRouter, status
from sqlalchemy import text

from app.platform.config import settings
from app.platform.db.session import engine
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
async def health_check():
    database = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        database = "unavailable"

    return api_response(
        data={
            "status": "ok" if database == "ok" else "degraded",
            "service": settings.APP_NAME,
            "database": database,
            "framework_version": settings.FRAMEWORK_VERSION,
        },
        message="Service is healthy" if database == "ok" else "Service is degraded",
        status_code=status.HTTP_200_OK,
    )
