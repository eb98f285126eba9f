from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


class EngageFlowError(Exception):
    """Base exception for EngageFlow application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(EngageFlowError):
    """Raised when a requested record does not exist"""
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class JobNotFoundError(NotFoundError):
    """Raised when a job is not found"""
    def __init__(self, message: str = "Job not found"):
        super().__init__(message)


class ItemNotFoundError(NotFoundError):
    """Raised when an engagement item is not found"""
    def __init__(self, message: str = "Engagement item not found"):
        super().__init__(message)


class ValidationError(EngageFlowError):
    """Raised when validation fails"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ConflictError(EngageFlowError):
    """Raised when a write collides with existing state"""
    def __init__(self, message: str = "Conflict"):
        super().__init__(message, status.HTTP_409_CONFLICT)


class AlreadyRunningError(ConflictError):
    """Raised when a job of the same kind and scope is still active"""
    def __init__(self, kind: str, scope: str):
        self.kind = kind
        self.scope = scope
        super().__init__(f"A {kind} job is already running for scope '{scope}'")


class ConcurrentModificationError(ConflictError):
    """Raised when an item changed between read and write"""
    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Engagement item {item_id} was modified concurrently, retry the operation")


class InvalidTransitionError(EngageFlowError):
    """Raised when an operation is not valid from the item's current status"""
    def __init__(self, operation: str, current_status: str, item_id: Optional[int] = None):
        self.operation = operation
        self.current_status = current_status
        self.item_id = item_id
        super().__init__(
            f"Cannot {operation} an item in status '{current_status}'",
            status.HTTP_409_CONFLICT,
        )


class ContentTooLongError(EngageFlowError):
    """Raised when a draft exceeds the platform's length limit"""
    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"Draft is {length} characters, the limit is {limit}",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class AccountIneligibleError(EngageFlowError):
    """Raised when the assigned account may not publish"""
    def __init__(self, message: str = "Account is not eligible to publish"):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class AdapterUnavailableError(EngageFlowError):
    """Raised when an external adapter fails or times out"""
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class AnalysisUnavailableError(AdapterUnavailableError):
    pass


class GenerationUnavailableError(AdapterUnavailableError):
    pass


class PublishUnavailableError(AdapterUnavailableError):
    pass


async def engageflow_exception_handler(request: Request, exc: EngageFlowError):
    """Handle custom EngageFlow exceptions"""
    if exc.status_code >= 500:
        logger.error(f"EngageFlow exception: {exc.message}")
    else:
        logger.info(f"Request rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database exceptions"""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
