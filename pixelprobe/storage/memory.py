from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pixelprobe.logging import get_logger
from pixelprobe.storage.errors import ConstraintViolation
from pixelprobe.storage.models import ImageOperation, OperationStatus, OperationType

_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "error_message",
        "output_url",
        "output_key",
        "output_size",
        "content_type",
        "width",
        "height",
        "aspect_ratio",
    }
)


class MemoryStore:
    """In-process backing store for image operation records."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.image_operations: Dict[str, ImageOperation] = {}
        # RLock so helpers can nest acquisitions within one thread
        self._data_lock = threading.RLock()

    def create_image_operation(self, operation: ImageOperation) -> ImageOperation:
        with self._data_lock:
            if operation.id in self.image_operations:
                raise ConstraintViolation(
                    "image operation already exists", field="id", value=operation.id
                )
            self.image_operations[operation.id] = operation
        self.logger.info(
            "image_operation_created",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation.operation_type.value,
            status=operation.status.value,
        )
        return operation

    def get_image_operation(
        self, operation_id: str, *, user_id: Optional[str] = None
    ) -> Optional[ImageOperation]:
        with self._data_lock:
            operation = self.image_operations.get(operation_id)
        if operation is None:
            return None
        if user_id is not None and operation.user_id != user_id:
            return None
        return operation

    def list_image_operations(
        self,
        user_id: str,
        *,
        operation_type: Optional[OperationType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ImageOperation], int]:
        """Return one page of a user's operations, newest first, plus the total."""

        with self._data_lock:
            owned = [
                op
                for op in self.image_operations.values()
                if op.user_id == user_id
                and (operation_type is None or op.operation_type == operation_type)
            ]
        owned.sort(key=lambda op: op.created_at, reverse=True)
        start = max(offset, 0)
        return owned[start : start + max(limit, 0)], len(owned)

    def update_image_operation(
        self, operation_id: str, **changes: Any
    ) -> Optional[ImageOperation]:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {', '.join(sorted(unknown))}")
        if "status" in changes:
            changes["status"] = OperationStatus(changes["status"])
        with self._data_lock:
            current = self.image_operations.get(operation_id)
            if current is None:
                return None
            updated = replace(current, updated_at=datetime.utcnow(), **changes)
            self.image_operations[operation_id] = updated
        return updated

    def delete_image_operations(
        self, user_id: str, operation_ids: Iterable[str]
    ) -> List[ImageOperation]:
        """Delete the caller's records among ``operation_ids`` and return them."""

        deleted: List[ImageOperation] = []
        with self._data_lock:
            for operation_id in dict.fromkeys(operation_ids):
                operation = self.image_operations.get(operation_id)
                if operation is None or operation.user_id != user_id:
                    continue
                deleted.append(self.image_operations.pop(operation_id))
        if deleted:
            self.logger.info(
                "image_operations_deleted",
                user_id=user_id,
                count=len(deleted),
            )
        return deleted

