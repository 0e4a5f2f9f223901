"""
Tests for API endpoints.
Uses httpx AsyncClient for testing FastAPI routes.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from conftest import FIXED_NOW, client_error
from imgup.api.settings import SECRET_MASK
from imgup.config import settings as app_settings
from imgup.main import app
from imgup.services.uploader_service import UploaderService, get_uploader_service

PNG = b"\x89PNG\r\n\x1a\n\x00\x00"


@pytest.fixture
def service(settings_store, client_factory) -> UploaderService:
    return UploaderService(settings_store, client_factory=client_factory, clock=lambda: FIXED_NOW)


@pytest.fixture
async def client(service):
    """HTTP client against the app, with the uploader service overridden."""
    app.dependency_overrides[get_uploader_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def post_image(client: AsyncClient, body: bytes = PNG, content_type: str = "image/png", filename: str = "Screenshot 2024.PNG"):
    return await client.post(
        "/api/uploads",
        params={"filename": filename},
        content=body,
        headers={"Content-Type": content_type},
    )


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_info(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "imgup API"
        assert "version" in data


class TestUploadEndpoint:
    """Tests for POST /api/uploads."""

    @pytest.mark.asyncio
    async def test_upload_success(self, client: AsyncClient, service, s3_settings, fake_s3):
        await service.save_settings(s3_settings)

        response = await post_image(client)

        assert response.status_code == 201
        data = response.json()
        assert data["url"].startswith("https://b.s3.us-east-1.amazonaws.com/images/2024/03/15/Screenshot-2024-")
        assert data["markdown"] == f"![]({data['url']})"
        assert data["filename"] == "Screenshot 2024.PNG"
        assert fake_s3.operations()[-2:] == ["put_object", "head_object"]

    @pytest.mark.asyncio
    async def test_alt_text_in_markdown(self, client: AsyncClient, service, s3_settings):
        await service.save_settings(s3_settings)

        response = await client.post(
            "/api/uploads",
            params={"filename": "a.png", "alt": "diagram"},
            content=PNG,
            headers={"Content-Type": "image/png"},
        )

        assert response.json()["markdown"].startswith("![diagram](https://")

    @pytest.mark.asyncio
    async def test_non_image_rejected(self, client: AsyncClient, service, s3_settings, fake_s3):
        await service.save_settings(s3_settings)
        calls_before = fake_s3.network_calls

        response = await post_image(client, body=b"hello", content_type="text/plain", filename="a.txt")

        assert response.status_code == 415
        assert fake_s3.network_calls == calls_before

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self, client: AsyncClient, service, s3_settings):
        await service.save_settings(s3_settings)

        response = await post_image(client, body=b"")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_body_rejected(self, client: AsyncClient, service, s3_settings, monkeypatch):
        await service.save_settings(s3_settings)
        monkeypatch.setattr(app_settings, "max_upload_bytes", 4)

        response = await post_image(client)

        assert response.status_code == 413

    @pytest.mark.asyncio
    async def test_not_configured(self, client: AsyncClient, service):
        """Without valid settings the upload fails fast with a config error."""
        await service.start()

        response = await post_image(client)

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "CONFIG_ERROR"
        assert "not configured" in data["message"]

    @pytest.mark.asyncio
    async def test_verification_failure(self, client: AsyncClient, service, s3_settings, fake_s3):
        await service.save_settings(s3_settings)
        fake_s3.drop_writes = True

        response = await post_image(client)

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "VERIFICATION_FAILED"
        assert data["details"]["bucket"] == "b"

    @pytest.mark.asyncio
    async def test_access_denied(self, client: AsyncClient, service, s3_settings, fake_s3):
        await service.save_settings(s3_settings)
        fake_s3.put_error = client_error("AccessDenied", 403, "PutObject")

        response = await post_image(client)

        assert response.status_code == 502
        assert response.json()["error"] == "ACCESS_DENIED"


class TestSettingsEndpoints:
    """Tests for /api/settings."""

    @pytest.mark.asyncio
    async def test_get_masks_secret(self, client: AsyncClient, service, s3_settings):
        await service.save_settings(s3_settings)

        response = await client.get("/api/settings")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is True
        assert data["settings"]["s3"]["secretAccessKey"] == SECRET_MASK
        assert data["settings"]["s3"]["accessKeyId"] == "AKIATEST"
        assert data["settings"]["r2"]["secretAccessKey"] == ""

    @pytest.mark.asyncio
    async def test_put_valid_settings(self, client: AsyncClient, s3_settings, settings_store):
        response = await client.put("/api/settings", json=s3_settings.to_blob())

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["bucket"] == "b"
        assert data["public_url_base"] == "https://b.s3.us-east-1.amazonaws.com"
        assert settings_store.load() == s3_settings

    @pytest.mark.asyncio
    async def test_put_with_mask_keeps_secret(self, client: AsyncClient, service, s3_settings, settings_store):
        await service.save_settings(s3_settings)
        blob = s3_settings.to_blob()
        blob["s3"]["secretAccessKey"] = SECRET_MASK
        blob["s3"]["pathPrefix"] = "notes/"

        response = await client.put("/api/settings", json=blob)

        assert response.json()["valid"] is True
        stored = settings_store.load()
        assert stored.s3.secret_access_key == "secret"
        assert stored.s3.path_prefix == "notes/"

    @pytest.mark.asyncio
    async def test_put_invalid_settings_lists_problems(self, client: AsyncClient, fake_s3):
        response = await client.put("/api/settings", json={"serviceType": "s3", "s3": {"bucket": "b"}})

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "invalid"
        assert "Access key ID is required" in data["problems"]
        assert fake_s3.network_calls == 0

    @pytest.mark.asyncio
    async def test_put_unknown_service_type(self, client: AsyncClient):
        response = await client.put("/api/settings", json={"serviceType": "gcs"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_validate_reports_missing_bucket(self, client: AsyncClient, service, s3_settings, fake_s3):
        await service.save_settings(s3_settings)
        fake_s3.get_error = client_error("NoSuchBucket", 404, "GetObject")

        response = await client.post("/api/settings/validate")

        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "bucket_not_found"


class TestHealthEndpoint:
    """Tests for /api/health."""

    @pytest.mark.asyncio
    async def test_healthy_when_configured(self, client: AsyncClient, service, s3_settings):
        await service.save_settings(s3_settings)

        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["storage"] == "configured"
        assert response.json()["bucket"] == "b"

    @pytest.mark.asyncio
    async def test_unhealthy_when_not_configured(self, client: AsyncClient, service):
        await service.start()

        response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "unhealthy"
