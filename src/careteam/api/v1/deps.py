from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.careteam.domain.errors import ErrorCode, OperationResult
from src.careteam.services.container import CareCoordinationServices


_STATUS_BY_ERROR = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_ROLE: status.HTTP_409_CONFLICT,
    ErrorCode.TARGET_NOT_ASSIGNED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
}


def get_services(request: Request) -> CareCoordinationServices:
    return request.app.state.services


def raise_for_result(result: OperationResult) -> None:
    """Translate a failed service result into an HTTP error."""

    if result.success:
        return
    code = _STATUS_BY_ERROR.get(result.error, status.HTTP_400_BAD_REQUEST) if result.error else status.HTTP_400_BAD_REQUEST
    raise HTTPException(
        status_code=code,
        detail={"error": result.error.value if result.error else None, "message": result.message},
    )
