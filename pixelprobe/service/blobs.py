"""Filesystem-backed object storage for gallery images.

Objects are addressed by slash-separated keys (``uploads/<user>/<name>``)
rooted under one directory, and exposed at ``<public_base_url>/<key>``.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pixelprobe.logging import get_logger
from pixelprobe.service.fs import safe_join, sanitize_filename

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredObject:
    key: str
    public_url: str
    size: int
    content_type: Optional[str] = None


class LocalBlobStore:
    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        return safe_join(self.root, key)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def put(
        self,
        data: bytes,
        filename: str,
        *,
        folder: str,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        """Write ``data`` under ``folder`` with a collision-free key."""

        name = f"{uuid.uuid4().hex}-{sanitize_filename(filename)}"
        key = f"{folder.strip('/')}/{name}"
        dest = self._path_for(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file then rename so readers never see partial data
        fd, tmp_path = tempfile.mkstemp(dir=str(dest.parent), prefix=".upload_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_path, dest)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        logger.info("blob_stored", key=key, size=len(data), content_type=content_type)
        return StoredObject(
            key=key,
            public_url=self.public_url(key),
            size=len(data),
            content_type=content_type,
        )

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def read(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def delete(self, key: str) -> bool:
        """Remove the object; returns False when it was already gone."""

        path = self._path_for(key)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("blob_deleted", key=key)
        return True
