"""
Upload orchestration: key -> signed PUT -> signed HEAD -> public URL.

Flow for one image:
1. Derive the storage key from content + name + path prefix
2. PUT the bytes with the declared content type
3. HEAD the same key to confirm the object is readable
4. Return the provider's public URL for the key

Nothing is retried. Every failure is raised as an UploadError subclass
carrying endpoint, bucket, key and (when the provider sent them) status
code and request id.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from imgup.storage.client import StorageClient
from imgup.storage.errors import (
    NetworkError,
    UploadError,
    VerificationError,
    classify_error,
    error_code,
    is_network_failure,
    is_object_missing,
    response_context,
)
from imgup.storage.keys import generate_key
from imgup.storage.models import UploadRequest
from imgup.utils.logging import log_upload_completed, log_upload_failed, log_upload_started
from imgup.utils.metrics import upload_bytes_total, upload_duration_seconds, uploads_total

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Uploads images through one StorageClient snapshot.

    Holds no per-upload state, so concurrent upload() calls are independent.
    """

    def __init__(self, client: StorageClient, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            client: Signed storage client for the active provider
            clock: Returns the current time; used for the key's date partition
        """
        self.client = client
        self._clock = clock

    async def upload(self, request: UploadRequest) -> str:
        """
        Upload one image and return its public URL.

        Args:
            request: Bytes, original filename and MIME type

        Returns:
            Public URL of the stored object

        Raises:
            ConfigurationError: Credentials missing at request time
            NotFoundError: Bucket does not exist
            AccessDeniedError: Credentials rejected
            NetworkError: Provider unreachable
            VerificationError: Write accepted but object not confirmed
            UnclassifiedError: Anything else the provider reported
        """
        client = self.client
        now = self._clock() if self._clock else None
        key = generate_key(request.content, request.original_name, client.config.path_prefix, now=now)
        start_time = time.monotonic()

        log_upload_started(logger, client.provider, client.bucket, key, request.size)

        try:
            await client.put_object(key, request.content, request.mime_type)
        except (ClientError, BotoCoreError) as e:
            error = classify_error(
                e,
                endpoint=client.endpoint.request_endpoint,
                bucket=client.bucket,
                key=key,
            )
            self._record_failure(error, key, start_time, stage="write")
            raise error from e

        try:
            await self._verify(key, request.size)
        except UploadError as error:
            self._record_failure(error, key, start_time, stage="verify")
            raise

        url = client.public_url(key)
        duration = time.monotonic() - start_time

        uploads_total.labels(provider=client.provider, status="success").inc()
        upload_bytes_total.labels(provider=client.provider).inc(request.size)
        upload_duration_seconds.labels(provider=client.provider).observe(duration)
        log_upload_completed(logger, client.provider, client.bucket, key, duration * 1000, url=url)

        return url

    async def _verify(self, key: str, expected_size: int) -> None:
        """
        Confirm the object just written is readable and complete.

        Raises:
            NetworkError: HEAD could not be sent
            VerificationError: HEAD returned anything but the written object
        """
        client = self.client
        details = {
            "endpoint": client.endpoint.request_endpoint,
            "bucket": client.bucket,
            "key": key,
        }

        try:
            response = await client.head_object(key)
        except (ClientError, BotoCoreError) as e:
            if is_network_failure(e):
                raise NetworkError(
                    f"Upload sent but verification could not reach {details['endpoint']}: {e}",
                    details={**details, "cause": str(e)},
                ) from e
            if isinstance(e, ClientError):
                details.update(response_context(e))
                if is_object_missing(e):
                    message = "Upload reported success but the object was not found afterwards"
                else:
                    message = f"Upload reported success but verification failed ({error_code(e)})"
            else:
                details["cause"] = str(e)
                message = f"Upload reported success but verification failed: {e}"
            raise VerificationError(message, details=details) from e

        actual_size = response.get("ContentLength")
        if actual_size is not None and actual_size != expected_size:
            raise VerificationError(
                f"Stored object is {actual_size} bytes, expected {expected_size}",
                details={**details, "expected_size": expected_size, "actual_size": actual_size},
            )

    def _record_failure(self, error: UploadError, key: str, start_time: float, stage: str) -> None:
        client = self.client
        uploads_total.labels(provider=client.provider, status=error.code.lower()).inc()
        log_upload_failed(
            logger,
            client.provider,
            client.bucket,
            error.code,
            error.message,
            key=key,
            duration_ms=(time.monotonic() - start_time) * 1000,
            stage=stage,
            status_code=error.status_code,
            request_id=error.request_id,
        )


__all__ = ["UploadOrchestrator"]
