from fastapi import APIRouter

from app.features.analysis.routes.analyses import router as analyses_router
from app.features.analysis.routes.analyze_page import router as analyze_page_router
from app.features.analysis.routes.sse import router as analysis_sse_router
from app.features.billing.routes.checkout import router as checkout_router
from app.features.billing.routes.webhook import router as webhook_router
from app.features.health.routes.health import router as health_router
from app.features.users.routes.users import router as users_router

api_router = APIRouter()

# Function endpoints (/functions/v1/...)
api_router.include_router(analyze_page_router)
api_router.include_router(checkout_router)
api_router.include_router(webhook_router)

# Presentation-layer reads and writes
api_router.include_router(analyses_router)
api_router.include_router(analysis_sse_router)
api_router.include_router(users_router)
api_router.include_router(health_router)
