from __future__ import annotations

import math
import re
from typing import Optional
from urllib.parse import quote

from fastapi import (
    APIRouter,
    Depends,
    File,
    Header,
    Path,
    Query,
    Response,
    UploadFile,
)
from fastapi.concurrency import run_in_threadpool

from pixelprobe.api.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    Envelope,
    ImageLimitsResponse,
    ImageListResponse,
    ImageOperationResponse,
    ImageProbeResponse,
    Pagination,
)
from pixelprobe.logging import get_logger
from pixelprobe.service.aspect import AspectRatio
from pixelprobe.service.dimensions import ImageFormat
from pixelprobe.service.errors import (
    AuthenticationError,
    PayloadTooLargeError,
    ValidationError,
)
from pixelprobe.service.runtime import get_runtime
from pixelprobe.service.uploads import classify_image
from pixelprobe.storage.models import OperationType

logger = get_logger(__name__)

router = APIRouter(prefix="/v1")

_FILTER_PATTERN = "^(all|" + "|".join(op.value for op in OperationType) + ")$"


# User ids name the owner's blob folder, so they must be one plain path segment
_USER_ID_PATTERN = re.compile(r"[\w@+:=-][\w@+:=.-]*", re.ASCII)


async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID", max_length=255),
) -> str:
    """Identity forwarded by the upstream auth provider."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError("authentication required")
    if not _USER_ID_PATTERN.fullmatch(user_id):
        raise ValidationError("invalid user id", detail={"header": "X-User-ID"})
    return user_id


def _attachment_header(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    # One extra byte tells an exactly-full upload apart from an oversized one
    contents = await file.read(max_bytes + 1)
    if len(contents) > max_bytes:
        raise PayloadTooLargeError("file too large", detail={"max_upload_bytes": max_bytes})
    return contents


@router.get("/images/limits", response_model=Envelope, tags=["images"])
async def get_image_limits(user_id: str = Depends(get_user_id)):
    runtime = get_runtime()
    return Envelope(
        status="ok",
        data=ImageLimitsResponse(
            max_upload_bytes=runtime.settings.max_upload_bytes,
            formats=[fmt.value for fmt in ImageFormat],
            aspect_ratios=[ratio.value for ratio in AspectRatio],
        ),
    )


@router.post("/images/probe", response_model=Envelope, tags=["images"])
async def probe_image(
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
):
    """Report format, dimensions and aspect bucket without storing anything."""

    runtime = get_runtime()
    contents = await _read_upload(file, runtime.settings.max_upload_bytes)
    classification = classify_image(contents, default=runtime.settings.default_aspect_ratio)
    dimensions = classification.dimensions
    return Envelope(
        status="ok",
        data=ImageProbeResponse(
            format=classification.format.value if classification.format else None,
            width=dimensions.width if dimensions else None,
            height=dimensions.height if dimensions else None,
            aspect_ratio=classification.aspect_ratio.value,
            detected=classification.detected,
            size=len(contents),
        ),
    )


@router.post("/images", response_model=Envelope, status_code=201, tags=["images"])
async def upload_image(
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    contents = await _read_upload(file, runtime.settings.max_upload_bytes)
    operation = await run_in_threadpool(
        runtime.uploads.upload_image,
        user_id,
        file.filename,
        contents,
        file.content_type,
    )
    return Envelope(status="ok", data=ImageOperationResponse.from_operation(operation))


@router.get("/images", response_model=Envelope, tags=["images"])
async def list_images(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, description="Images per page"),
    filter: str = Query("all", pattern=_FILTER_PATTERN),
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    page_size = min(limit or runtime.settings.default_page_size, runtime.settings.max_page_size)
    operation_type = None if filter == "all" else OperationType(filter)
    items, total = runtime.store.list_image_operations(
        user_id,
        operation_type=operation_type,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    total_pages = math.ceil(total / page_size) if total else 0
    return Envelope(
        status="ok",
        data=ImageListResponse(
            images=[ImageOperationResponse.from_operation(op) for op in items],
            pagination=Pagination(
                page=page,
                limit=page_size,
                total=total,
                total_pages=total_pages,
                has_more=page < total_pages,
            ),
        ),
    )


@router.post("/images/bulk_delete", response_model=Envelope, tags=["images"])
async def bulk_delete_images(
    body: BulkDeleteRequest,
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    deleted = await run_in_threadpool(runtime.uploads.delete_images, user_id, body.ids)
    return Envelope(status="ok", data=BulkDeleteResponse(deleted=deleted))


@router.get("/images/{image_id}", response_model=Envelope, tags=["images"])
async def get_image(
    image_id: str = Path(..., max_length=64),
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    operation = runtime.uploads.get_image(user_id, image_id)
    return Envelope(status="ok", data=ImageOperationResponse.from_operation(operation))


@router.get("/images/{image_id}/content", tags=["images"])
async def download_image(
    image_id: str = Path(..., max_length=64),
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    operation, content = await run_in_threadpool(
        runtime.uploads.read_image, user_id, image_id
    )
    filename = operation.output_key.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type=operation.content_type or "application/octet-stream",
        headers={"Content-Disposition": _attachment_header(filename)},
    )


@router.delete("/images/{image_id}", response_model=Envelope, tags=["images"])
async def delete_image(
    image_id: str = Path(..., max_length=64),
    user_id: str = Depends(get_user_id),
):
    runtime = get_runtime()
    operation = await run_in_threadpool(runtime.uploads.delete_image, user_id, image_id)
    return Envelope(status="ok", data={"id": operation.id, "deleted": True})
