from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List

from engageflow.models.job import JobKind, JobStatus


class JobCreate(BaseModel):
    kind: JobKind
    scope: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class JobStarted(BaseModel):
    jobId: str
    message: str


class JobResponse(BaseModel):
    jobId: str
    kind: JobKind
    scope: str
    status: JobStatus
    progress: int = Field(ge=0, le=100)
    resultCount: int = 0
    skippedCount: int = 0
    parameters: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    createdAt: Optional[datetime] = None
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobsResponse(BaseModel):
    data: List[JobResponse]


class IdleResponse(BaseModel):
    status: str = "idle"
