from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from pixelprobe.storage.models import ImageOperation

# Upper bound for ids accepted in one bulk request
MAX_BULK_IDS = 1000

_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "forbidden",
    "not_found",
    "rate_limited",
    "validation_error",
    "conflict",
    "server_error",
})


class ErrorBody(BaseModel):
    """Error envelope body with stable code values."""

    code: str = Field(..., description="Stable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    """API envelope wrapping every response."""

    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: str(uuid4()))


class ImageProbeResponse(BaseModel):
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: str
    detected: bool
    size: int


class ImageOperationResponse(BaseModel):
    id: str
    operation_type: str
    status: str
    output_url: str
    output_size: Optional[int] = None
    content_type: Optional[str] = None
    aspect_ratio: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    input_image_ids: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_operation(cls, operation: ImageOperation) -> "ImageOperationResponse":
        return cls(
            id=operation.id,
            operation_type=operation.operation_type.value,
            status=operation.status.value,
            output_url=operation.output_url,
            output_size=operation.output_size,
            content_type=operation.content_type,
            aspect_ratio=operation.aspect_ratio,
            width=operation.width,
            height=operation.height,
            model=operation.model,
            prompt=operation.prompt,
            input_image_ids=list(operation.input_image_ids),
            error_message=operation.error_message,
            created_at=operation.created_at,
            updated_at=operation.updated_at,
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class ImageListResponse(BaseModel):
    images: List[ImageOperationResponse] = Field(default_factory=list)
    pagination: Pagination


class ImageLimitsResponse(BaseModel):
    max_upload_bytes: int
    formats: List[str]
    aspect_ratios: List[str]


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(default_factory=list, max_length=MAX_BULK_IDS)

    @field_validator("ids")
    @classmethod
    def _strip_ids(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item and item.strip()]


class BulkDeleteResponse(BaseModel):
    deleted: int
