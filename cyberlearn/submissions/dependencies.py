"""FastAPI dependencies for the submission engine.

Provides dependency injection for:
- The submission orchestrator
- Engine error to HTTP error mapping
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from cyberlearn.core.errors import AggregationIncompleteError, EngineError

from .orchestrator import SubmissionOrchestrator


async def get_orchestrator(request: Request) -> SubmissionOrchestrator:
    """Get submission orchestrator from app state.

    Args:
        request: FastAPI request

    Returns:
        SubmissionOrchestrator instance
    """
    app_state = request.app.state
    if not getattr(app_state, "orchestrator", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Submission engine not available",
        )
    return app_state.orchestrator


# Type alias for dependency injection
OrchestratorDep = Annotated[SubmissionOrchestrator, Depends(get_orchestrator)]


def handle_engine_error(error: EngineError) -> HTTPException:
    """Convert engine errors to HTTP exceptions.

    Args:
        error: Engine error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "validation_error": 422,  # Unprocessable content
        "duplicate_submission": status.HTTP_409_CONFLICT,
        "concurrency_conflict": status.HTTP_409_CONFLICT,
        "storage_error": status.HTTP_503_SERVICE_UNAVAILABLE,
        "grading_timeout": status.HTTP_503_SERVICE_UNAVAILABLE,
        "aggregation_incomplete": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    headers = {"Retry-After": "1"} if error.retryable else None
    detail: str | dict[str, str] = error.message
    if isinstance(error, AggregationIncompleteError):
        detail = {
            "message": error.message,
            "submission_id": str(error.submission_id),
        }

    return HTTPException(status_code=status_code, detail=detail, headers=headers)
