from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from pixelprobe.config import Settings
from pixelprobe.logging import get_logger
from pixelprobe.service.aspect import DEFAULT_ASPECT_RATIO, AspectRatio, closest_aspect_ratio
from pixelprobe.service.blobs import LocalBlobStore
from pixelprobe.service.dimensions import (
    BytesLike,
    ImageDimensions,
    ImageFormat,
    detect_dimensions,
    detect_format,
)
from pixelprobe.service.errors import NotFoundError, PayloadTooLargeError, ValidationError
from pixelprobe.service.fs import sanitize_filename
from pixelprobe.storage.memory import MemoryStore
from pixelprobe.storage.models import ImageOperation, OperationStatus, OperationType

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageClassification:
    format: Optional[ImageFormat]
    dimensions: Optional[ImageDimensions]
    aspect_ratio: AspectRatio

    @property
    def detected(self) -> bool:
        return self.dimensions is not None


def classify_image(
    buffer: BytesLike, *, default: AspectRatio = DEFAULT_ASPECT_RATIO
) -> ImageClassification:
    """Sniff a buffer and bucket it into a gallery aspect ratio.

    Unreadable headers are expected (unknown formats, truncated uploads) and
    fall back to ``default`` instead of failing.
    """

    image_format = detect_format(buffer)
    dimensions = detect_dimensions(buffer)
    if dimensions is None:
        logger.info(
            "image_dimensions_undetected",
            size=len(buffer),
            claimed_format=image_format.value if image_format else None,
            fallback_aspect_ratio=default.value,
        )
        return ImageClassification(image_format, None, default)
    return ImageClassification(
        image_format, dimensions, closest_aspect_ratio(dimensions.width, dimensions.height)
    )


class UploadService:
    """Stores uploaded images and records them as gallery operations."""

    def __init__(self, store: MemoryStore, blobs: LocalBlobStore, settings: Settings) -> None:
        self.store = store
        self.blobs = blobs
        self.settings = settings

    def _validate_upload(self, content: bytes, content_type: Optional[str]) -> ImageClassification:
        if not content:
            raise ValidationError("file is empty")
        max_bytes = self.settings.max_upload_bytes
        if len(content) > max_bytes:
            raise PayloadTooLargeError(
                "file too large", detail={"max_upload_bytes": max_bytes}
            )
        classification = classify_image(content, default=self.settings.default_aspect_ratio)
        declared_image = bool(content_type) and content_type.lower().startswith("image/")
        if classification.format is None and not declared_image:
            raise ValidationError(
                "file must be an image", detail={"content_type": content_type}
            )
        return classification

    def upload_image(
        self,
        user_id: str,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
    ) -> ImageOperation:
        if not user_id or user_id.startswith(".") or "/" in user_id or "\\" in user_id:
            raise ValidationError("invalid user id")
        classification = self._validate_upload(content, content_type)
        if classification.format is not None:
            # magic bytes are more trustworthy than the client's header
            content_type = classification.format.mime_type
        stored = self.blobs.put(
            content,
            sanitize_filename(filename),
            folder=f"uploads/{user_id}",
            content_type=content_type,
        )
        dimensions = classification.dimensions
        operation = ImageOperation.new(
            user_id,
            OperationType.UPLOAD,
            output_url=stored.public_url,
            output_key=stored.key,
            output_size=stored.size,
            content_type=content_type,
            status=OperationStatus.COMPLETED,
            aspect_ratio=classification.aspect_ratio.value,
            width=dimensions.width if dimensions else None,
            height=dimensions.height if dimensions else None,
        )
        try:
            self.store.create_image_operation(operation)
        except Exception:
            self.blobs.delete(stored.key)
            raise
        logger.info(
            "image_uploaded",
            operation_id=operation.id,
            user_id=user_id,
            size=stored.size,
            format=classification.format.value if classification.format else None,
            aspect_ratio=operation.aspect_ratio,
        )
        return operation

    def _delete_blob(self, operation: ImageOperation) -> None:
        try:
            removed = self.blobs.delete(operation.output_key)
        except OSError as exc:
            logger.warning(
                "blob_delete_failed",
                operation_id=operation.id,
                key=operation.output_key,
                error=str(exc),
            )
            return
        if not removed:
            logger.info("blob_already_missing", operation_id=operation.id, key=operation.output_key)

    def delete_image(self, user_id: str, operation_id: str) -> ImageOperation:
        deleted = self.store.delete_image_operations(user_id, [operation_id])
        if not deleted:
            raise NotFoundError("image not found", detail={"id": operation_id})
        self._delete_blob(deleted[0])
        return deleted[0]

    def delete_images(self, user_id: str, operation_ids: Iterable[str]) -> int:
        ids = [operation_id for operation_id in operation_ids if operation_id]
        if not ids:
            raise ValidationError("no image ids provided")
        deleted = self.store.delete_image_operations(user_id, ids)
        if not deleted:
            raise NotFoundError("no images found", detail={"ids": ids})
        for operation in deleted:
            self._delete_blob(operation)
        return len(deleted)

    def get_image(self, user_id: str, operation_id: str) -> ImageOperation:
        operation = self.store.get_image_operation(operation_id, user_id=user_id)
        if operation is None:
            raise NotFoundError("image not found", detail={"id": operation_id})
        return operation

    def read_image(self, user_id: str, operation_id: str) -> tuple[ImageOperation, bytes]:
        operation = self.get_image(user_id, operation_id)
        try:
            content = self.blobs.read(operation.output_key)
        except FileNotFoundError:
            raise NotFoundError(
                "image content missing", detail={"id": operation_id}
            ) from None
        return operation, content
