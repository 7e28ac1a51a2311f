"""
Maps typed service errors onto HTTP responses.

Body shape: {"detail": <message>, "code": <stable code>} plus the offending
seat numbers or capacity figures where the error carries them.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ticketbay.core.exceptions import BookingError, InsufficientCapacity, StorageError
from ticketbay.core.logging import get_logger

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    content = {"detail": exc.message, "code": exc.code}
    unit_numbers = getattr(exc, "unit_numbers", None)
    if unit_numbers:
        content["unit_numbers"] = unit_numbers
    if isinstance(exc, InsufficientCapacity):
        content["requested"] = exc.requested
        content["available"] = exc.available

    if exc.status_code >= 500:
        logger.error("request_rejected", code=exc.code, detail=exc.message, status_code=exc.status_code)
    else:
        logger.info("request_rejected", code=exc.code, detail=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=content)


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("storage_error", error=str(exc))
    error = StorageError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.message, "code": error.code})


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
    SQLAlchemyError: storage_error_handler,
}


def register_exception_handlers(app) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
