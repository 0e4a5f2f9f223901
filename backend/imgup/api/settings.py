"""
Settings endpoints.

GET  /settings           - current provider settings, secrets masked
PUT  /settings           - save settings, then validate and activate them
POST /settings/validate  - re-run validation on the current settings

Saving always persists what was sent; the response says whether the
settings passed validation (shape check + connectivity probe).
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from imgup.services.uploader_service import UploaderService, ValidationReport, get_uploader_service
from imgup.storage.models import UploaderSettings

router = APIRouter()

SECRET_MASK = "********"


class ValidationResponse(BaseModel):
    """Response schema for settings validation."""
    valid: bool
    provider: str
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    public_url_base: Optional[str] = None
    error: Optional[str] = Field(None, description="Error message when invalid")
    reason: Optional[str] = Field(None, description="invalid, bucket_not_found, access_denied or connectivity")
    problems: List[str] = Field(default_factory=list)


class SettingsResponse(BaseModel):
    """Response schema for settings read."""
    settings: Dict[str, Any] = Field(..., description="Persisted layout with secrets masked")
    configured: bool
    error: Optional[str] = None


def mask_secrets(blob: Dict[str, Any]) -> Dict[str, Any]:
    """Replace non-empty secret keys in a settings blob with SECRET_MASK."""
    masked = dict(blob)
    for provider in ("s3", "r2"):
        record = dict(masked.get(provider, {}))
        if record.get("secretAccessKey"):
            record["secretAccessKey"] = SECRET_MASK
        masked[provider] = record
    return masked


def unmask_secrets(blob: Dict[str, Any], current: UploaderSettings) -> Dict[str, Any]:
    """Put stored secrets back where the client echoed the mask."""
    restored = dict(blob)
    for provider in ("s3", "r2"):
        record = restored.get(provider)
        if isinstance(record, dict) and record.get("secretAccessKey") == SECRET_MASK:
            restored[provider] = {
                **record,
                "secretAccessKey": getattr(current, provider).secret_access_key,
            }
    return restored


def to_response(report: ValidationReport) -> ValidationResponse:
    error = report.error
    return ValidationResponse(
        valid=report.valid,
        provider=report.provider,
        bucket=report.bucket,
        endpoint=report.endpoint,
        public_url_base=report.public_url_base,
        error=error.message if error else None,
        reason=error.reason if error else None,
        problems=error.details.get("problems", []) if error else [],
    )


@router.get("", response_model=SettingsResponse)
async def get_settings(service: UploaderService = Depends(get_uploader_service)):
    """Return the active settings with secrets masked."""
    last_error = service.last_error
    return SettingsResponse(
        settings=mask_secrets(service.settings.to_blob()),
        configured=service.is_ready,
        error=last_error.message if last_error else None,
    )


@router.put("", response_model=ValidationResponse)
async def save_settings(
    blob: Dict[str, Any],
    service: UploaderService = Depends(get_uploader_service),
):
    """
    Save settings and re-validate.

    Send the persisted layout ({"serviceType": ..., "s3": {...}, "r2": {...}}).
    A secretAccessKey equal to the mask keeps the stored secret.
    """
    try:
        new_settings = UploaderSettings.model_validate(unmask_secrets(blob, service.settings))
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False)
        )

    report = await service.save_settings(new_settings)
    return to_response(report)


@router.post("/validate", response_model=ValidationResponse)
async def validate_settings(service: UploaderService = Depends(get_uploader_service)):
    """Re-run validation and the connectivity probe on the current settings."""
    report = await service.revalidate()
    return to_response(report)
