"""FastAPI exception handler for upload errors."""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from imgup.storage.errors import ConfigurationError, NetworkError, UploadError

logger = logging.getLogger(__name__)


def status_for(exc: UploadError) -> int:
    """Map an upload error to an HTTP status code."""
    if isinstance(exc, ConfigurationError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, NetworkError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    # NotFoundError, AccessDeniedError, VerificationError, UnclassifiedError:
    # the storage provider is the upstream that failed
    return status.HTTP_502_BAD_GATEWAY


async def upload_exception_handler(request: Request, exc: UploadError) -> JSONResponse:
    """Render an UploadError as {"error", "message", "details"}."""
    status_code = status_for(exc)

    logger.warning(
        f"Upload error on {request.url.path}: {exc.code} - {exc.message}",
        extra={"event": "upload_error_response", "error_code": exc.code, "status": status_code},
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
    )


__all__ = ["upload_exception_handler", "status_for"]
