"""
Storage upload core for S3-compatible object storage (AWS S3, Cloudflare R2).

Takes image bytes, writes them under a content-derived key, verifies the
write and returns a public URL. Uploads are write-once: nothing here lists,
updates or deletes objects.
"""
from imgup.storage.client import StorageClient
from imgup.storage.errors import (
    AccessDeniedError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    UnclassifiedError,
    UploadError,
    VerificationError,
)
from imgup.storage.keys import generate_key
from imgup.storage.models import (
    R2ProviderConfig,
    ResolvedEndpoint,
    S3ProviderConfig,
    ServiceType,
    UploaderSettings,
    UploadRequest,
)
from imgup.storage.providers import R2Adapter, S3Adapter, create_adapter
from imgup.storage.uploader import UploadOrchestrator
from imgup.storage.validator import ConfigValidator

__all__ = [
    "StorageClient",
    "UploadOrchestrator",
    "ConfigValidator",
    "generate_key",
    "S3Adapter",
    "R2Adapter",
    "create_adapter",
    "ServiceType",
    "S3ProviderConfig",
    "R2ProviderConfig",
    "UploaderSettings",
    "UploadRequest",
    "ResolvedEndpoint",
    "UploadError",
    "ConfigurationError",
    "NotFoundError",
    "AccessDeniedError",
    "NetworkError",
    "VerificationError",
    "UnclassifiedError",
]
