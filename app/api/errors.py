import logging

from fastapi import HTTPException, status

from app.core.exceptions import (
    BrokerageError,
    CommissionValidationError,
    ConcurrentWriteError,
    DataIntegrityError,
)

logger = logging.getLogger(__name__)

def to_http_exception(exc: BrokerageError) -> HTTPException:
    """Map a domain error onto the HTTP status the API reports for it."""
    if isinstance(exc, CommissionValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, DataIntegrityError):
        logger.error(f"Data integrity error: {exc}")
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ConcurrentWriteError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
            headers={"Retry-After": "1"},
        )
    logger.exception("Unhandled brokerage error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
