from fastapi import APIRouter

from engageflow.api.v1.endpoints import engagements, jobs

api_router = APIRouter()

api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(engagements.router, prefix="/engagements", tags=["engagements"])
