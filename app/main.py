from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import structlog

from app.config import settings
from app.core.error_handlers import register_exception_handlers
from app.core.logging import configure_logging

# IMPORT ROUTERS
from app.routers.award_rankings import router as award_rankings_router
from app.routers.categories import router as categories_router
from app.routers.health import router as health_router
from app.routers.sessions import router as sessions_router

load_dotenv()
configure_logging()

logger = structlog.get_logger(__name__)


# Swagger UI tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Assessments"},
    {"name": "Award Rankings"},
    {"name": "Categories"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

# REGISTER EXCEPTION HANDLERS
register_exception_handlers(app)

# REGISTER ROUTERS (order matches _OPENAPI_TAGS / Swagger UI display order)
app.include_router(health_router)           # Health
app.include_router(sessions_router)         # Assessments
app.include_router(award_rankings_router)   # Award Rankings
app.include_router(categories_router)       # Categories


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    logger.info("app_starting", service=settings.APP_NAME, env=settings.APP_ENV)


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
