"""Service exception hierarchy and its HTTP mapping.

Every failure raised inside the transport or storage layers is a
``ServiceError`` subclass; the handlers installed by
``install_exception_handlers`` turn them into ``{"error": ...}`` JSON
responses so nothing escapes a request uncaught.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging import get_logger

logger = get_logger(__name__)


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(ServiceError):
    """Missing or malformed session id or required field."""

    status_code = 400


class NotFoundError(ServiceError):
    """Unknown session id, cache miss or unknown clear target."""

    status_code = 404

    def __init__(self, message: str, marker: Optional[str] = None, **extra: Any):
        self.marker = marker
        super().__init__(message, **extra)


class TransportError(ServiceError):
    """Write to a closed or broken stream.

    Caught where it happens and turned into cleanup; never sent to a client.
    """


class BackendError(ServiceError):
    """Persistence or backend collaborator failure.

    The response carries only the generic ``message``; ``detail`` is logged.
    """

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)


class MethodNotAllowedError(ServiceError):
    """Unsupported verb on a known path."""

    status_code = 405


async def _service_error_handler(request: Request, exc: ServiceError) -> ORJSONResponse:
    if isinstance(exc, BackendError):
        logger.error("Backend failure", path=request.url.path, error=exc.message, detail=exc.detail)
    else:
        logger.debug("Request rejected", path=request.url.path,
                     status=exc.status_code, error=exc.message)
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    # Router-level 404/405 (unknown path, unlisted verb) share the error body shape
    return ORJSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


def install_exception_handlers(app: FastAPI) -> None:
    """Register the ServiceError and HTTP error -> JSON mappings on an application."""
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
