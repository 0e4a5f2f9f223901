"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- provider
- bucket
- key
- duration_ms
- error_code

Usage:
    from imgup.utils.logging import configure_logging, log_upload_completed

    configure_logging('imgup-api', 'INFO')
    log_upload_completed(logger, provider='s3', bucket='b', key='k', duration_ms=45.2)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier (e.g. imgup-api)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(levelname)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())

        # botocore logs every request at DEBUG, far too noisy for paste traffic
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("boto3").setLevel(logging.WARNING)

        cls._configured = True


def _build_log_extra(
    event: str,
    provider: Optional[str] = None,
    bucket: Optional[str] = None,
    key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        provider: Optional storage provider (s3, r2)
        bucket: Optional bucket name
        key: Optional object key
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if provider:
        extra["provider"] = provider
    if bucket:
        extra["bucket"] = bucket
    if key:
        extra["key"] = key
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Upload event functions

def log_upload_started(
    logger: logging.Logger,
    provider: str,
    bucket: str,
    key: str,
    size_bytes: int,
    **kwargs
):
    """Log the start of an upload (before the PUT is sent)."""
    extra = _build_log_extra(
        event="upload_started",
        provider=provider,
        bucket=bucket,
        key=key,
        size_bytes=size_bytes,
        **kwargs
    )
    logger.info(f"Upload started: {key}", extra=extra)


def log_upload_completed(
    logger: logging.Logger,
    provider: str,
    bucket: str,
    key: str,
    duration_ms: float,
    url: Optional[str] = None,
    **kwargs
):
    """
    Log upload completion event.

    Args:
        logger: Logger instance
        provider: Provider name (required)
        bucket: Bucket name (required)
        key: Object key (required)
        duration_ms: Write + verify time in milliseconds (required)
        url: Public URL returned to the caller
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_completed",
        provider=provider,
        bucket=bucket,
        key=key,
        duration_ms=duration_ms,
        **kwargs
    )
    if url:
        extra["url"] = url

    logger.info(f"Upload completed: {key}", extra=extra)


def log_upload_failed(
    logger: logging.Logger,
    provider: str,
    bucket: str,
    error_code: str,
    error: str,
    key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    stage: Optional[str] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log upload failure event.

    Args:
        logger: Logger instance
        provider: Provider name (required)
        bucket: Bucket name (required)
        error_code: UploadError code (required)
        error: Error message (required)
        key: Object key, if one was generated
        duration_ms: Optional duration in milliseconds
        stage: 'write' or 'verify'
        include_traceback: Whether to include stack trace (default: False,
            classified provider errors rarely need one)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_failed",
        provider=provider,
        bucket=bucket,
        key=key,
        duration_ms=duration_ms,
        error_code=error_code,
        error=str(error),
        **kwargs
    )
    if stage:
        extra["stage"] = stage

    message = f"Upload failed: {error_code} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


# Configuration event functions

def log_config_validated(
    logger: logging.Logger,
    provider: str,
    bucket: str,
    endpoint: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log a successful settings validation (shape check + probe)."""
    extra = _build_log_extra(
        event="config_validated",
        provider=provider,
        bucket=bucket,
        duration_ms=duration_ms,
        endpoint=endpoint,
        **kwargs
    )
    logger.info(f"Storage settings valid: {provider} bucket={bucket}", extra=extra)


def log_config_invalid(
    logger: logging.Logger,
    provider: str,
    reason: str,
    error: str,
    **kwargs
):
    """Log a failed settings validation."""
    extra = _build_log_extra(
        event="config_invalid",
        provider=provider,
        reason=reason,
        error=str(error),
        **kwargs
    )
    logger.warning(f"Storage settings invalid ({reason}): {error}", extra=extra)


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
