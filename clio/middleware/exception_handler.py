"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import ClioException

logger = logging.getLogger(__name__)


async def clio_exception_handler(request: Request, exc: ClioException) -> JSONResponse:
    """
    Turn a ClioException into ``{"error", "message", "details"}`` JSON.

    Client errors (4xx) are logged at warning level, everything else at error.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"ClioException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
