from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
import logging

from engageflow.core.config import settings
from engageflow.core.logging import setup_logging
from engageflow.core.exceptions import (
    EngageFlowError, engageflow_exception_handler,
    sqlalchemy_exception_handler, general_exception_handler
)
from engageflow.core.rate_limiting import limiter, custom_rate_limit_exceeded_handler
from engageflow.api.deps import get_job_runner, get_job_store
from engageflow.api.v1.api import api_router
from engageflow.db.init_db import init_db

# Set up logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup
    init_db()
    expired = get_job_store().expire_stale(settings.JOB_STALE_AFTER_SECONDS)
    if expired:
        logger.info(f"Released {expired} abandoned jobs on startup")

    yield

    # Shutdown: let in-flight jobs reach a terminal status
    runner = get_job_runner()
    if runner.active_jobs:
        logger.info(f"Waiting for {runner.active_jobs} running jobs to finish")
        await runner.join()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Brand engagement workflow and background job orchestration",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Add rate limiter to app
app.state.limiter = limiter

# Exception handlers
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
app.add_exception_handler(EngageFlowError, engageflow_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
