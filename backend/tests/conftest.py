"""
Test configuration and fixtures.

boto3 is replaced by FakeS3, an in-memory stand-in that records every
request, so tests can assert exactly which network calls were made.
"""
import io
import os
import threading
from datetime import datetime, timezone

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"

import pytest
from botocore.exceptions import ClientError

from imgup.settings_store import SettingsStore
from imgup.storage.client import StorageClient
from imgup.storage.models import (
    R2ProviderConfig,
    S3ProviderConfig,
    ServiceType,
    UploaderSettings,
)


FIXED_NOW = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def client_error(code: str, status: int, operation: str, request_id: str = "REQ123") -> ClientError:
    """Build a botocore ClientError the way the S3 client raises it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} message"},
            "ResponseMetadata": {
                "HTTPStatusCode": status,
                "RequestId": request_id,
                "HTTPHeaders": {},
            },
        },
        operation,
    )


class FakeS3:
    """In-memory stand-in for a boto3 S3 client that counts requests."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.put_error = None
        self.head_error = None
        self.get_error = None
        # Accept PUTs without storing them (eventually-consistent provider)
        self.drop_writes = False
        # Report a different size on HEAD than what was written
        self.size_skew = 0
        # Optional gate to hold a PUT in flight: put waits on put_gate
        self.put_started = threading.Event()
        self.put_gate = None
        # Same for the probe GET
        self.get_started = threading.Event()
        self.get_gate = None

    @property
    def network_calls(self) -> int:
        return len(self.calls)

    def operations(self):
        return [c[0] for c in self.calls]

    def put_object(self, Bucket, Key, Body, ContentType):
        self.calls.append(("put_object", Bucket, Key, ContentType))
        self.put_started.set()
        if self.put_gate is not None:
            self.put_gate.wait(timeout=5)
        if self.put_error is not None:
            raise self.put_error
        if not self.drop_writes:
            self.objects[(Bucket, Key)] = (Body, ContentType)
        return {"ETag": '"etag"', "ResponseMetadata": {"HTTPStatusCode": 200}}

    def head_object(self, Bucket, Key):
        self.calls.append(("head_object", Bucket, Key))
        if self.head_error is not None:
            raise self.head_error
        if (Bucket, Key) not in self.objects:
            raise client_error("404", 404, "HeadObject")
        body, content_type = self.objects[(Bucket, Key)]
        return {"ContentLength": len(body) + self.size_skew, "ContentType": content_type}

    def get_object(self, Bucket, Key, Range=None):
        self.calls.append(("get_object", Bucket, Key))
        self.get_started.set()
        if self.get_gate is not None:
            self.get_gate.wait(timeout=5)
        if self.get_error is not None:
            raise self.get_error
        if (Bucket, Key) not in self.objects:
            raise client_error("NoSuchKey", 404, "GetObject")
        body, content_type = self.objects[(Bucket, Key)]
        return {"Body": io.BytesIO(body[:1]), "ContentType": content_type}


class CountingFactory:
    """StorageClient factory that hands every client the same FakeS3."""

    def __init__(self, fake: FakeS3):
        self.fake = fake
        self.built = []

    def __call__(self, config):
        self.built.append(config)
        return StorageClient(config, boto_client=self.fake)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def client_factory(fake_s3: FakeS3) -> CountingFactory:
    return CountingFactory(fake_s3)


@pytest.fixture
def s3_config() -> S3ProviderConfig:
    return S3ProviderConfig(
        access_key_id="AKIATEST",
        secret_access_key="secret",
        region="us-east-1",
        bucket="b",
        path_prefix="images/",
    )


@pytest.fixture
def r2_config() -> R2ProviderConfig:
    return R2ProviderConfig(
        access_key_id="r2key",
        secret_access_key="r2secret",
        bucket="mybucket",
        endpoint="https://ACCT.r2.cloudflarestorage.com/mybucket",
        path_prefix="images/",
    )


@pytest.fixture
def s3_settings(s3_config: S3ProviderConfig) -> UploaderSettings:
    return UploaderSettings(service_type=ServiceType.S3, s3=s3_config)


@pytest.fixture
def r2_settings(r2_config: R2ProviderConfig) -> UploaderSettings:
    return UploaderSettings(service_type=ServiceType.R2, r2=r2_config)


@pytest.fixture
def settings_store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")
