"""
S3-compatible storage client snapshot.

Uses boto3 with the S3 API for every provider (AWS S3, Cloudflare R2, ...).
A StorageClient is built once per settings version and never changed: when
settings are saved a new StorageClient replaces the old one, and uploads
already in flight finish on the client they started with.

boto3 is blocking, so each call runs in a worker thread via asyncio.to_thread.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import InvalidRegionError

from imgup.config import settings as app_settings
from imgup.storage.errors import ConfigurationError
from imgup.storage.models import ProviderConfig, ResolvedEndpoint
from imgup.storage.providers import ProviderAdapter, adapter_for

logger = logging.getLogger(__name__)


def build_boto_client(
    config: ProviderConfig,
    adapter: ProviderAdapter,
    connect_timeout: float,
    read_timeout: float,
):
    """
    Create a boto3 S3 client for one provider config.

    Automatic retries are turned off: a failed paste is reported to the user
    instead of being silently re-sent.
    """
    return boto3.client(
        "s3",
        endpoint_url=adapter.resolve_request_endpoint(config.bucket),
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=adapter.resolve_signing_region(),
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": adapter.addressing_style},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
        ),
    )


class StorageClient:
    """
    Signed S3 client bound to one immutable provider config.

    Attributes:
        config: Provider settings this client was built from
        adapter: Endpoint/URL resolver for the provider
        endpoint: Resolved endpoint snapshot
        bucket: Bucket used in requests (endpoint segment wins over settings)
    """

    def __init__(
        self,
        config: ProviderConfig,
        adapter: Optional[ProviderAdapter] = None,
        boto_client: Any = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ):
        """
        Args:
            config: Active provider config
            adapter: Adapter for config (built from it when omitted)
            boto_client: Pre-built boto3 client; tests pass a fake here
            connect_timeout: Seconds, defaults to STORAGE_CONNECT_TIMEOUT
            read_timeout: Seconds, defaults to STORAGE_READ_TIMEOUT

        Raises:
            ConfigurationError: If the adapter cannot resolve the config or
                boto3 rejects the endpoint or region
        """
        self.config = config
        self.adapter = adapter or adapter_for(config)
        self.endpoint: ResolvedEndpoint = self.adapter.resolve(config.bucket)
        self.bucket = self.adapter.resolve_bucket(config.bucket)

        if boto_client is None:
            try:
                boto_client = build_boto_client(
                    config,
                    self.adapter,
                    connect_timeout if connect_timeout is not None else app_settings.storage_connect_timeout,
                    read_timeout if read_timeout is not None else app_settings.storage_read_timeout,
                )
            except InvalidRegionError as e:
                raise ConfigurationError(
                    f"Region '{self.endpoint.signing_region}' is not accepted by the S3 client",
                    details={"field": "region", "region": self.endpoint.signing_region, "cause": str(e)},
                ) from e
            except ValueError as e:
                # botocore rejects hosts it cannot sign for (e.g. underscores)
                raise ConfigurationError(
                    f"Endpoint '{self.endpoint.request_endpoint}' is not accepted by the S3 client",
                    details={"field": "endpoint", "endpoint": self.endpoint.request_endpoint, "cause": str(e)},
                ) from e
        self._client = boto_client

        logger.debug(
            f"Storage client ready: {self.adapter.service_type.value} "
            f"endpoint={self.endpoint.request_endpoint} bucket={self.bucket}"
        )

    @classmethod
    def from_settings(cls, config: ProviderConfig) -> "StorageClient":
        """Build a client snapshot from provider settings (default factory)."""
        return cls(config)

    @property
    def provider(self) -> str:
        return self.adapter.service_type.value

    async def put_object(self, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        """Signed PUT of body under key."""
        return await asyncio.to_thread(
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )

    async def head_object(self, key: str) -> Dict[str, Any]:
        """Signed HEAD of key. Raises botocore ClientError ('404') when absent."""
        return await asyncio.to_thread(
            self._client.head_object,
            Bucket=self.bucket,
            Key=key,
        )

    async def probe_object(self, key: str) -> Dict[str, Any]:
        """
        Signed one-byte GET of key.

        Unlike HEAD, a failed GET carries an error body, so a missing bucket
        (NoSuchBucket) can be told apart from a missing key (NoSuchKey).
        """
        response = await asyncio.to_thread(
            self._client.get_object,
            Bucket=self.bucket,
            Key=key,
            Range="bytes=0-0",
        )
        body = response.get("Body")
        if body is not None:
            body.close()
        return response

    def public_url(self, key: str) -> str:
        return self.adapter.resolve_public_url(self.config.bucket, key)


__all__ = ["StorageClient", "build_boto_client"]
