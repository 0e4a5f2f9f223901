"""
Data models for the storage upload core.

Provider settings are frozen Pydantic models: a settings change always
produces a new object, so anything built from the old one (clients,
adapters, in-flight uploads) keeps seeing a consistent snapshot.

The persisted layout uses camelCase keys:

    {
        "serviceType": "s3",
        "s3": {"accessKeyId": "...", "region": "us-east-1", ...},
        "r2": {"accessKeyId": "...", "endpoint": "https://...", ...}
    }
"""
import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ServiceType(str, enum.Enum):
    """Storage backend variant."""
    S3 = "s3"
    R2 = "r2"


class _ProviderBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class S3ProviderConfig(_ProviderBase):
    """Amazon S3 (or an S3 endpoint reached through an explicit URL)."""
    access_key_id: str = Field("", description="Access key ID")
    secret_access_key: str = Field("", description="Secret access key")
    region: str = Field("us-east-1", description="AWS region, e.g. us-east-1")
    bucket: str = Field("", description="Bucket name")
    endpoint: str = Field("", description="Explicit endpoint URL; empty uses https://s3.{region}.amazonaws.com")
    custom_domain: str = Field("", description="Public hostname fronting the bucket; empty uses the S3 URL")
    path_prefix: str = Field("images/", description="Key prefix, must end with '/'")


class R2ProviderConfig(_ProviderBase):
    """Cloudflare R2 and other endpoint-addressed S3-compatible services."""
    access_key_id: str = Field("", description="Access key ID")
    secret_access_key: str = Field("", description="Secret access key")
    bucket: str = Field("", description="Bucket name")
    endpoint: str = Field(
        "",
        description="Service URL, e.g. https://<account>.r2.cloudflarestorage.com; may end with /<bucket>",
    )
    custom_domain: str = Field("", description="Public hostname fronting the bucket; empty uses the endpoint")
    path_prefix: str = Field("images/", description="Key prefix, must end with '/'")


ProviderConfig = Union[S3ProviderConfig, R2ProviderConfig]

# Fields the original single-provider layout stored at the top level
_LEGACY_S3_FIELDS = {"accessKeyId", "secretAccessKey", "region", "bucket", "endpoint", "pathPrefix"}


class UploaderSettings(_ProviderBase):
    """
    Complete persisted settings record.

    Exactly one provider is active, selected by service_type. The inactive
    sub-record is kept so switching back does not lose what was typed.
    """
    service_type: ServiceType = ServiceType.S3
    s3: S3ProviderConfig = Field(default_factory=S3ProviderConfig)
    r2: R2ProviderConfig = Field(default_factory=R2ProviderConfig)

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_layout(cls, data: Any) -> Any:
        # Older settings files were a flat S3 record with no serviceType
        if isinstance(data, dict) and "s3" not in data and data.keys() & _LEGACY_S3_FIELDS:
            legacy = {k: v for k, v in data.items() if k in _LEGACY_S3_FIELDS}
            rest = {k: v for k, v in data.items() if k not in _LEGACY_S3_FIELDS}
            return {**rest, "serviceType": ServiceType.S3.value, "s3": legacy}
        return data

    def active_provider(self) -> ProviderConfig:
        """Return the provider sub-record selected by service_type."""
        if self.service_type == ServiceType.R2:
            return self.r2
        return self.s3

    def to_blob(self) -> dict:
        """Serialize to the persisted camelCase layout."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class UploadRequest:
    """One image to upload. Created per call and never shared."""
    content: bytes
    original_name: str
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ResolvedEndpoint:
    """
    Where requests go and where the public link points.

    Attributes:
        request_endpoint: URL used for signed S3-protocol calls
        bucket_segment: Bucket taken from the endpoint path, if it had one
        public_url_base: Base of the externally visible link (no trailing '/')
        signing_region: Region used in the SigV4 scope
    """
    request_endpoint: str
    bucket_segment: Optional[str]
    public_url_base: str
    signing_region: str


__all__ = [
    "ServiceType",
    "S3ProviderConfig",
    "R2ProviderConfig",
    "ProviderConfig",
    "UploaderSettings",
    "UploadRequest",
    "ResolvedEndpoint",
]
