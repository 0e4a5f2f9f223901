"""
Upload error taxonomy and botocore failure classification.

Every failure surfaced by the storage core is one of the UploadError
subclasses below. None of them are retried by this package: image paste is
user-triggered, so retrying is left to whoever renders the error.
"""
from typing import Any, Dict, Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)


# Provider error codes meaning the credentials were rejected or lack permission
ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "ExpiredToken",
    "Forbidden",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
    "403",
}

BUCKET_NOT_FOUND_CODES = {"NoSuchBucket"}

# HEAD responses carry no body, so a missing key only shows up as a bare 404
OBJECT_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class UploadError(Exception):
    """
    Base class for all storage upload failures.

    Attributes:
        message: Human-readable message, safe to show in a notification
        code: Stable machine-readable error code
        details: Diagnostic context (endpoint, bucket, key, status_code,
            request_id) - only the fields that are known are present
    """

    code = "UPLOAD_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in (details or {}).items() if v is not None}

    @property
    def status_code(self) -> Optional[int]:
        return self.details.get("status_code")

    @property
    def request_id(self) -> Optional[str]:
        return self.details.get("request_id")

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigurationError(UploadError):
    """Settings are missing or malformed, or the connectivity probe failed."""

    code = "CONFIG_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        reason: str = "invalid",
    ) -> None:
        super().__init__(message, details)
        # invalid | bucket_not_found | access_denied | connectivity
        self.reason = reason


class NotFoundError(UploadError):
    """The provider reports that the bucket does not exist."""

    code = "BUCKET_NOT_FOUND"


class AccessDeniedError(UploadError):
    """Credentials rejected or not allowed to write to the bucket."""

    code = "ACCESS_DENIED"


class NetworkError(UploadError):
    """Transport failure: DNS, TLS, timeout or connection reset."""

    code = "NETWORK_ERROR"


class VerificationError(UploadError):
    """The write was accepted but the object could not be confirmed afterwards."""

    code = "VERIFICATION_FAILED"


class UnclassifiedError(UploadError):
    """Any other provider or protocol failure."""

    code = "UNCLASSIFIED"


def error_code(exc: ClientError) -> str:
    """Get the provider error code from a botocore ClientError."""
    return str(exc.response.get("Error", {}).get("Code", ""))


def response_context(exc: ClientError) -> Dict[str, Any]:
    """Extract HTTP status code and provider request id from a ClientError."""
    metadata = exc.response.get("ResponseMetadata", {})
    headers = metadata.get("HTTPHeaders", {})
    return {
        "status_code": metadata.get("HTTPStatusCode"),
        "request_id": metadata.get("RequestId") or headers.get("x-amz-request-id"),
        "provider_code": error_code(exc) or None,
    }


def is_network_failure(exc: BaseException) -> bool:
    """True for botocore transport failures (no HTTP response was received)."""
    return isinstance(exc, (BotoConnectionError, HTTPClientError))


def is_object_missing(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) in OBJECT_NOT_FOUND_CODES


def classify_error(
    exc: BaseException,
    *,
    endpoint: str,
    bucket: str,
    key: Optional[str] = None,
) -> UploadError:
    """
    Map a botocore failure from a write request onto the upload taxonomy.

    Args:
        exc: Exception raised by the boto3 client
        endpoint: Resolved request endpoint (for diagnostics)
        bucket: Bucket the request targeted
        key: Object key, if the request had one

    Returns:
        The UploadError subclass instance to raise
    """
    details: Dict[str, Any] = {"endpoint": endpoint, "bucket": bucket, "key": key}

    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return ConfigurationError(
            "Storage credentials are missing or incomplete",
            details=details,
        )

    if is_network_failure(exc):
        details["cause"] = str(exc)
        return NetworkError(f"Could not reach {endpoint}: {exc}", details=details)

    if isinstance(exc, ClientError):
        details.update(response_context(exc))
        code = error_code(exc)

        # A PUT cannot 404 on the key itself, so any 404 means the bucket is gone
        if code in BUCKET_NOT_FOUND_CODES or details.get("status_code") == 404:
            return NotFoundError(
                f"Bucket '{bucket}' was not found at {endpoint}",
                details=details,
            )

        if code in ACCESS_DENIED_CODES or details.get("status_code") == 403:
            return AccessDeniedError(
                f"Access denied to bucket '{bucket}'. "
                "Check the access key, secret and bucket policy.",
                details=details,
            )

        return UnclassifiedError(
            f"Storage provider rejected the request ({code or 'unknown error'})",
            details=details,
        )

    if isinstance(exc, BotoCoreError):
        details["cause"] = str(exc)
        return UnclassifiedError(f"Storage client error: {exc}", details=details)

    details["cause"] = repr(exc)
    return UnclassifiedError(f"Unexpected storage failure: {exc}", details=details)


__all__ = [
    "UploadError",
    "ConfigurationError",
    "NotFoundError",
    "AccessDeniedError",
    "NetworkError",
    "VerificationError",
    "UnclassifiedError",
    "classify_error",
    "error_code",
    "response_context",
    "is_network_failure",
    "is_object_missing",
]
