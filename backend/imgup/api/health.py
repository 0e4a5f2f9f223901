"""
Health check endpoint.
Reports whether storage settings are active.
"""
from fastapi import APIRouter, Depends, HTTPException

from imgup.services.uploader_service import UploaderService, get_uploader_service

router = APIRouter()


@router.get("")
async def health_check(service: UploaderService = Depends(get_uploader_service)):
    """
    Health check endpoint.
    Uses the result of the last validation; does not probe the provider.
    """
    health_status = {
        "status": "healthy",
        "provider": service.settings.service_type.value,
        "storage": "unknown"
    }

    snapshot = service.snapshot
    if snapshot is not None:
        health_status["storage"] = "configured"
        health_status["bucket"] = snapshot.client.bucket
    else:
        error = service.last_error
        health_status["storage"] = f"error: {error.message}" if error else "not configured"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
