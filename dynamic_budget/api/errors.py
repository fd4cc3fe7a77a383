"""Translation of domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from dynamic_budget.domain.exceptions import (
    ConflictError,
    DomainException,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
    UpstreamServiceError,
)

STATUS_CODES = {
    NotFoundError: 404,
    UnauthorizedError: 401,
    InvalidArgumentError: 400,
    ConflictError: 409,
    UpstreamServiceError: 503,
}


def status_code_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return status_code
    return 500


def http_error(exc: DomainException) -> HTTPException:
    """HTTPException carrying the domain message"""
    status_code = status_code_for(exc)
    if status_code == 503:
        return HTTPException(status_code=503, detail=f"Upstream service unavailable: {exc}")
    return HTTPException(status_code=status_code, detail=str(exc))


def internal_error(db: Session, request_id: str, exc: Exception) -> HTTPException:
    """Roll back, log and hide the details of an unexpected failure"""
    db.rollback()
    logging.error(f"Unexpected error: {exc}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
