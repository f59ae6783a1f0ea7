from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from pixelprobe.config import get_settings, reset_settings_cache
from pixelprobe.logging import get_logger
from pixelprobe.service.blobs import LocalBlobStore
from pixelprobe.service.uploads import UploadService
from pixelprobe.storage.memory import MemoryStore

logger = get_logger(__name__)


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self):
        self.settings = get_settings()
        logger.info(
            "runtime_init_started",
            data_root=self.settings.data_root,
            max_upload_bytes=self.settings.max_upload_bytes,
        )
        try:
            self.blobs = LocalBlobStore(
                Path(self.settings.data_root) / "blobs",
                self.settings.public_base_url,
            )
        except OSError as exc:
            logger.error(
                "runtime_blob_store_init_failed",
                data_root=self.settings.data_root,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        self.store = MemoryStore()
        self.uploads = UploadService(self.store, self.blobs, self.settings)
        logger.info("runtime_init_complete")


runtime: Optional[Runtime] = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Double-checked locking: the unlocked check is the fast path once the
    runtime exists; the locked check prevents two threads creating it.
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""

    global runtime
    with _runtime_lock:
        reset_settings_cache()
        runtime = Runtime()
        return runtime
