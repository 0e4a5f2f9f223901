"""
Tests for the upload orchestrator (write, verify, classify).
"""
import asyncio
import re

import pytest
from botocore.exceptions import (
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from conftest import FIXED_NOW, client_error
from imgup.storage.client import StorageClient
from imgup.storage.errors import (
    AccessDeniedError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    UnclassifiedError,
    VerificationError,
    classify_error,
)
from imgup.storage.models import UploadRequest
from imgup.storage.uploader import UploadOrchestrator

PNG_10_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00"


@pytest.fixture
def png_request() -> UploadRequest:
    return UploadRequest(content=PNG_10_BYTES, original_name="Screenshot 2024.PNG", mime_type="image/png")


@pytest.fixture
def orchestrator(s3_config, fake_s3) -> UploadOrchestrator:
    client = StorageClient(s3_config, boto_client=fake_s3)
    return UploadOrchestrator(client, clock=lambda: FIXED_NOW)


class TestUploadSuccess:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_end_to_end_s3(self, orchestrator, fake_s3, png_request):
        """10-byte PNG on 2024-03-15 lands under the dated key and the URL contains it."""
        url = await orchestrator.upload(png_request)

        _, bucket, key, content_type = fake_s3.calls[0]
        assert re.fullmatch(r"images/2024/03/15/Screenshot-2024-[0-9a-f]{8}\.png", key)
        assert bucket == "b"
        assert content_type == "image/png"
        assert url == f"https://b.s3.us-east-1.amazonaws.com/{key}"

    @pytest.mark.asyncio
    async def test_one_write_one_verify(self, orchestrator, fake_s3, png_request):
        await orchestrator.upload(png_request)
        assert fake_s3.operations() == ["put_object", "head_object"]
        assert fake_s3.calls[0][2] == fake_s3.calls[1][2]

    @pytest.mark.asyncio
    async def test_custom_domain_url(self, s3_config, fake_s3, png_request):
        config = s3_config.model_copy(update={"custom_domain": "cdn.example.com"})
        orchestrator = UploadOrchestrator(StorageClient(config, boto_client=fake_s3), clock=lambda: FIXED_NOW)

        url = await orchestrator.upload(png_request)

        assert url.startswith("https://cdn.example.com/images/2024/03/15/Screenshot-2024-")

    @pytest.mark.asyncio
    async def test_r2_writes_to_endpoint_bucket(self, r2_config, fake_s3, png_request):
        config = r2_config.model_copy(update={"bucket": "ignored"})
        orchestrator = UploadOrchestrator(StorageClient(config, boto_client=fake_s3), clock=lambda: FIXED_NOW)

        url = await orchestrator.upload(png_request)

        key = fake_s3.calls[0][2]
        assert fake_s3.calls[0][1] == "mybucket"
        assert url == f"https://ACCT.r2.cloudflarestorage.com/mybucket/{key}"

    @pytest.mark.asyncio
    async def test_concurrent_uploads_are_independent(self, orchestrator, fake_s3):
        requests = [
            UploadRequest(content=f"image-{i}".encode(), original_name="paste.png", mime_type="image/png")
            for i in range(5)
        ]
        urls = await asyncio.gather(*(orchestrator.upload(r) for r in requests))

        assert len(set(urls)) == 5
        assert fake_s3.operations().count("put_object") == 5
        assert fake_s3.operations().count("head_object") == 5


class TestWriteFailures:
    """Write failures are classified and never retried."""

    @pytest.mark.asyncio
    async def test_bucket_not_found(self, orchestrator, fake_s3, png_request):
        fake_s3.put_error = client_error("NoSuchBucket", 404, "PutObject")

        with pytest.raises(NotFoundError) as exc_info:
            await orchestrator.upload(png_request)

        error = exc_info.value
        assert error.details["bucket"] == "b"
        assert error.details["endpoint"] == "https://s3.us-east-1.amazonaws.com"
        assert error.details["key"].startswith("images/2024/03/15/")
        assert fake_s3.operations() == ["put_object"]

    @pytest.mark.asyncio
    async def test_access_denied(self, orchestrator, fake_s3, png_request):
        fake_s3.put_error = client_error("SignatureDoesNotMatch", 403, "PutObject")

        with pytest.raises(AccessDeniedError, match="Check the access key"):
            await orchestrator.upload(png_request)

    @pytest.mark.asyncio
    async def test_network_error(self, orchestrator, fake_s3, png_request):
        fake_s3.put_error = EndpointConnectionError(endpoint_url="https://s3.us-east-1.amazonaws.com")

        with pytest.raises(NetworkError) as exc_info:
            await orchestrator.upload(png_request)

        assert "cause" in exc_info.value.details
        assert fake_s3.operations() == ["put_object"]

    @pytest.mark.asyncio
    async def test_unclassified_carries_status_and_request_id(self, orchestrator, fake_s3, png_request):
        fake_s3.put_error = client_error("InternalError", 500, "PutObject", request_id="ABC-42")

        with pytest.raises(UnclassifiedError) as exc_info:
            await orchestrator.upload(png_request)

        assert exc_info.value.status_code == 500
        assert exc_info.value.request_id == "ABC-42"
        assert exc_info.value.details["provider_code"] == "InternalError"

    @pytest.mark.asyncio
    async def test_error_chains_original_exception(self, orchestrator, fake_s3, png_request):
        original = client_error("AccessDenied", 403, "PutObject")
        fake_s3.put_error = original

        with pytest.raises(AccessDeniedError) as exc_info:
            await orchestrator.upload(png_request)

        assert exc_info.value.__cause__ is original


class TestVerification:
    """The follow-up HEAD must confirm the write."""

    @pytest.mark.asyncio
    async def test_write_ok_but_object_missing(self, orchestrator, fake_s3, png_request):
        """A write that reports success but cannot be found is not a success."""
        fake_s3.drop_writes = True

        with pytest.raises(VerificationError, match="not found afterwards") as exc_info:
            await orchestrator.upload(png_request)

        assert exc_info.value.status_code == 404
        assert fake_s3.operations() == ["put_object", "head_object"]

    @pytest.mark.asyncio
    async def test_size_mismatch(self, orchestrator, fake_s3, png_request):
        fake_s3.size_skew = -3

        with pytest.raises(VerificationError, match="7 bytes, expected 10"):
            await orchestrator.upload(png_request)

    @pytest.mark.asyncio
    async def test_unexpected_status_on_verify(self, orchestrator, fake_s3, png_request):
        fake_s3.head_error = client_error("403", 403, "HeadObject")

        with pytest.raises(VerificationError):
            await orchestrator.upload(png_request)

    @pytest.mark.asyncio
    async def test_verify_timeout_is_network_error(self, orchestrator, fake_s3, png_request):
        fake_s3.head_error = ReadTimeoutError(endpoint_url="https://s3.us-east-1.amazonaws.com")

        with pytest.raises(NetworkError, match="verification could not reach"):
            await orchestrator.upload(png_request)


class TestClassifyError:
    """Tests for classify_error edge cases."""

    def test_missing_credentials(self):
        error = classify_error(NoCredentialsError(), endpoint="https://e", bucket="b")
        assert isinstance(error, ConfigurationError)

    def test_bare_404_on_write_is_bucket_not_found(self):
        error = classify_error(client_error("404", 404, "PutObject"), endpoint="https://e", bucket="b", key="k")
        assert isinstance(error, NotFoundError)

    def test_none_details_dropped(self):
        error = classify_error(client_error("AccessDenied", 403, "PutObject"), endpoint="https://e", bucket="b")
        assert "key" not in error.details
        assert str(error).startswith("[ACCESS_DENIED]")


class TestStorageClientConstruction:
    """boto3 rejections at client build time become configuration errors."""

    def test_rejected_endpoint(self, s3_config):
        config = s3_config.model_copy(update={"endpoint": "https://minio_local:9000"})

        with pytest.raises(ConfigurationError) as exc_info:
            StorageClient(config)

        assert exc_info.value.reason == "invalid"
        assert exc_info.value.details["field"] == "endpoint"

    def test_rejected_region(self, s3_config):
        config = s3_config.model_copy(update={"region": "-us-east-1"})

        with pytest.raises(ConfigurationError) as exc_info:
            StorageClient(config)

        assert exc_info.value.details["field"] == "region"
        assert isinstance(exc_info.value.__cause__, ValueError)
