from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.platform.config import settings
from app.platform.db import models  # noqa: F401  (registers every table on Base.metadata)
from app.platform.exceptions import add_exception_handlers

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Scores pages against the AI Search Mastery framework",
    version="2.1.0",
    debug=settings.DEBUG,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": f"{settings.APP_NAME} API",
        "description": "AI search readiness analysis with tiered access and Stripe checkout.",
        "version": "2.1.0",
        "framework_version": settings.FRAMEWORK_VERSION,
        "docs_url": "/docs",
        "functions_base": settings.FUNCTIONS_PREFIX,
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router)
