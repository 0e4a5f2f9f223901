"""
Provider adapters: where to send requests and what link to hand back.

S3-compatible services disagree on whether the bucket is a virtual host, a
path segment, or already part of the endpoint URL. Each adapter answers the
same three questions for its service so the upload path never has to know
which one it is talking to:

- resolve_request_endpoint(): URL for signed S3-protocol calls
- resolve_signing_region(): region used in the SigV4 scope
- resolve_public_url(): externally visible link to an object

Adapters only read their config; they never change it.
"""
import logging
from typing import Optional, Protocol
from urllib.parse import quote, urlsplit

from imgup.storage.errors import ConfigurationError
from imgup.storage.models import (
    ProviderConfig,
    R2ProviderConfig,
    ResolvedEndpoint,
    S3ProviderConfig,
    ServiceType,
    UploaderSettings,
)

logger = logging.getLogger(__name__)

R2_SIGNING_REGION = "auto"


def aws_default_endpoint(region: str) -> str:
    """Regional S3 endpoint used when no explicit endpoint is configured."""
    return f"https://s3.{region}.amazonaws.com"


def quote_key(key: str) -> str:
    """URL-quote an object key, keeping '/' separators."""
    return quote(key, safe="/")


class ProviderAdapter(Protocol):
    """Capabilities every storage backend variant provides."""

    service_type: ServiceType
    # boto3 addressing style: 'auto', 'virtual' or 'path'
    addressing_style: str

    def resolve_request_endpoint(self, bucket: str) -> str:
        ...

    def resolve_signing_region(self) -> str:
        ...

    def resolve_public_url(self, bucket: str, key: str) -> str:
        ...

    def resolve_bucket(self, bucket: str) -> str:
        ...

    def resolve(self, bucket: str) -> ResolvedEndpoint:
        ...


class S3Adapter:
    """Amazon S3, optionally through an explicit endpoint or a custom domain."""

    service_type = ServiceType.S3
    addressing_style = "auto"

    def __init__(self, config: S3ProviderConfig):
        self.config = config

    def resolve_request_endpoint(self, bucket: str) -> str:
        if self.config.endpoint:
            return self.config.endpoint.rstrip("/")
        return aws_default_endpoint(self.config.region)

    def resolve_signing_region(self) -> str:
        return self.config.region

    def resolve_bucket(self, bucket: str) -> str:
        return bucket

    def _public_base(self, bucket: str) -> str:
        if self.config.custom_domain:
            return f"https://{self.config.custom_domain}"
        # Virtual-hosted style link
        return f"https://{bucket}.s3.{self.config.region}.amazonaws.com"

    def resolve_public_url(self, bucket: str, key: str) -> str:
        return f"{self._public_base(bucket)}/{quote_key(key)}"

    def resolve(self, bucket: str) -> ResolvedEndpoint:
        return ResolvedEndpoint(
            request_endpoint=self.resolve_request_endpoint(bucket),
            bucket_segment=None,
            public_url_base=self._public_base(bucket),
            signing_region=self.resolve_signing_region(),
        )


class R2Adapter:
    """
    Cloudflare R2 style services addressed through a full endpoint URL.

    Some providers hand out a per-bucket endpoint such as
    https://ACCT.r2.cloudflarestorage.com/mybucket. When the endpoint has a
    path segment, that segment is the bucket used for requests and it is
    stripped off to get the bare service endpoint that requests are signed
    against.
    """

    service_type = ServiceType.R2
    addressing_style = "path"

    def __init__(self, config: R2ProviderConfig):
        self.config = config

        if not config.endpoint.strip():
            raise ConfigurationError(
                "R2 endpoint is required (e.g. https://<account>.r2.cloudflarestorage.com)",
                details={"field": "endpoint"},
            )

        parts = urlsplit(config.endpoint.strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError(
                f"R2 endpoint must be an http(s) URL, got '{config.endpoint}'",
                details={"field": "endpoint", "endpoint": config.endpoint},
            )

        segments = [s for s in parts.path.split("/") if s]
        if len(segments) > 1:
            raise ConfigurationError(
                "R2 endpoint may contain at most one path segment (the bucket name)",
                details={"field": "endpoint", "endpoint": config.endpoint},
            )

        self.bare_endpoint = f"{parts.scheme}://{parts.netloc}"
        self.bucket_segment: Optional[str] = segments[0] if segments else None

        if self.bucket_segment and config.bucket and self.bucket_segment != config.bucket:
            logger.warning(
                f"R2 endpoint names bucket '{self.bucket_segment}' but settings say "
                f"'{config.bucket}'; using the endpoint's bucket"
            )

    def resolve_request_endpoint(self, bucket: str) -> str:
        return self.bare_endpoint

    def resolve_signing_region(self) -> str:
        return R2_SIGNING_REGION

    def resolve_bucket(self, bucket: str) -> str:
        return self.bucket_segment or bucket

    def _public_base(self, bucket: str) -> str:
        if self.config.custom_domain:
            return f"https://{self.config.custom_domain}"
        return f"{self.bare_endpoint}/{self.resolve_bucket(bucket)}"

    def resolve_public_url(self, bucket: str, key: str) -> str:
        return f"{self._public_base(bucket)}/{quote_key(key)}"

    def resolve(self, bucket: str) -> ResolvedEndpoint:
        return ResolvedEndpoint(
            request_endpoint=self.bare_endpoint,
            bucket_segment=self.bucket_segment,
            public_url_base=self._public_base(bucket),
            signing_region=R2_SIGNING_REGION,
        )


def adapter_for(config: ProviderConfig) -> ProviderAdapter:
    """Build the adapter matching a provider config record."""
    if isinstance(config, R2ProviderConfig):
        return R2Adapter(config)
    return S3Adapter(config)


def create_adapter(settings: UploaderSettings) -> ProviderAdapter:
    """
    Build the adapter for the active provider.

    Raises:
        ConfigurationError: If the active provider's settings cannot be resolved
    """
    return adapter_for(settings.active_provider())


__all__ = [
    "ProviderAdapter",
    "S3Adapter",
    "R2Adapter",
    "R2_SIGNING_REGION",
    "adapter_for",
    "create_adapter",
    "aws_default_endpoint",
    "quote_key",
]
