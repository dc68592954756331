"""
Error taxonomy of the marketplace core.

Services raise these; the HTTP layer maps them to status codes via
``register_exception_handlers``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class Forbidden(MarketplaceError):
    """Wrong role, or the caller does not own the resource."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInput(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidState(MarketplaceError):
    """The operation is not allowed in the project's current status."""
    status_code = status.HTTP_409_CONFLICT


class StorageError(MarketplaceError):
    """Firestore was unreachable or rejected the write. Callers may retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def handle_marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, handle_marketplace_error)
