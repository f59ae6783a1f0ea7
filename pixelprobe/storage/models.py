from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class OperationType(str, Enum):
    """Producers of gallery images."""

    GENERATE = "generate"
    EDIT = "edit"
    REMOVE_BG = "remove_bg"
    UPSCALE = "upscale"
    UPLOAD = "upload"


class OperationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImageOperation:
    """One stored output image and the operation that produced it.

    ``input_image_ids`` links edit/remove_bg/upscale outputs back to the
    operations whose images they consumed.
    """

    id: str
    user_id: str
    operation_type: OperationType
    output_url: str
    output_key: str
    status: OperationStatus = OperationStatus.PENDING
    model: Optional[str] = None
    prompt: Optional[str] = None
    aspect_ratio: Optional[str] = None
    input_image_ids: List[str] = field(default_factory=list)
    output_size: Optional[int] = None
    content_type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def new(
        cls,
        user_id: str,
        operation_type: OperationType,
        *,
        output_url: str,
        output_key: str,
        **kwargs,
    ) -> "ImageOperation":
        now = datetime.utcnow()
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            operation_type=OperationType(operation_type),
            output_url=output_url,
            output_key=output_key,
            created_at=now,
            updated_at=now,
            **kwargs,
        )
