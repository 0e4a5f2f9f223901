"""
Service layer for the uploader API.
"""
from imgup.services.uploader_service import (
    UploaderService,
    UploadOutcome,
    ValidationReport,
    format_markdown,
    get_uploader_service,
)

__all__ = [
    "UploaderService",
    "UploadOutcome",
    "ValidationReport",
    "format_markdown",
    "get_uploader_service",
]
