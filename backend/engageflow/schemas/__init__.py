from .job import JobCreate, JobStarted, JobResponse, JobsResponse, IdleResponse
from .engagement import (
    EngagementItem, EngagementListResponse, GenerateRequest, RefineRequest, EditRequest,
    ApproveRequest, RejectRequest, ProofreadResponse, BatchRequest, BatchOutcome, BatchResponse
)
