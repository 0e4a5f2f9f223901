"""
Upload endpoint - the HTTP equivalent of pasting or dropping an image.

POST /uploads?filename=<name> with the raw image bytes as the body and the
image MIME type as Content-Type. Returns the public URL and a markdown
snippet ready to insert at the cursor.

Errors from the storage core are rendered by upload_exception_handler.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from imgup.config import settings
from imgup.services.uploader_service import (
    UploaderService,
    format_markdown,
    get_uploader_service,
    is_image,
)
from imgup.storage.models import UploadRequest

router = APIRouter()


# ============================================================================
# Request/Response Schemas
# ============================================================================

class UploadResponse(BaseModel):
    """Response schema for a completed upload."""
    url: str = Field(..., description="Public URL of the uploaded image")
    markdown: str = Field(..., description="Markdown image embed for the URL")
    filename: str = Field(..., description="Original filename as sent by the client")

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://cdn.example.com/images/2024/03/15/Screenshot-2024-1a2b3c4d.png",
                "markdown": "![](https://cdn.example.com/images/2024/03/15/Screenshot-2024-1a2b3c4d.png)",
                "filename": "Screenshot 2024.PNG"
            }
        }


# ============================================================================
# Endpoints
# ============================================================================

@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    request: Request,
    filename: str = Query(..., min_length=1, description="Original filename"),
    alt: str = Query("", description="Alt text for the markdown snippet"),
    service: UploaderService = Depends(get_uploader_service),
):
    """
    Upload one image to the configured bucket.

    Flow:
    1. Check content type and size
    2. Write the bytes under a content-derived key
    3. Verify the object exists
    4. Return the public URL
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if not is_image(content_type):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Only image/* content can be uploaded, got '{content_type or 'none'}'"
        )

    declared_length = request.headers.get("content-length")
    if declared_length and declared_length.isdigit() and int(declared_length) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_upload_bytes} bytes"
        )

    body = await request.body()
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body is empty"
        )
    if len(body) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_upload_bytes} bytes"
        )

    url = await service.upload(
        UploadRequest(content=body, original_name=filename, mime_type=content_type)
    )

    return UploadResponse(url=url, markdown=format_markdown(url, alt), filename=filename)
