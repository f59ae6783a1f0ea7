from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pixelprobe.api.error_handling import register_exception_handlers
from pixelprobe.api.routes import router
from pixelprobe.config import Settings
from pixelprobe.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

__version__ = "0.1.0"

HEALTH_CHECK_TIMEOUT_SECONDS = 2.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup so configuration errors surface early."""
    from pixelprobe.service.runtime import get_runtime

    runtime = get_runtime()
    logger.info(
        "app_started",
        version=__version__,
        max_upload_bytes=runtime.settings.max_upload_bytes,
    )
    yield
    logger.info("app_stopped")


app = FastAPI(title="pixelprobe", version=__version__, lifespan=lifespan)


def _allowed_origins() -> List[str]:
    settings = Settings.from_env()
    if settings.cors_allow_origins:
        return settings.cors_allow_origins
    # Default to common local dev hosts; avoid wildcard when credentials are enabled.
    return [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-ID", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    """Tag each request with a correlation ID for log tracing.

    The ID comes from the client's X-Request-ID header when present, otherwise
    a new UUID; it is echoed back in the X-Request-ID response header.
    """
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    # API responses carry per-user data; keep them out of shared caches
    if request.url.path.startswith("/v1/") or request.url.path == "/healthz":
        response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
    return response


register_exception_handlers(app)
app.include_router(router)


@app.get("/healthz")
async def health():
    """Report service status with a writable-storage probe."""
    from pixelprobe.service.runtime import get_runtime

    runtime = get_runtime()
    blob_root = Path(runtime.blobs.root)

    def _fs_probe() -> None:
        health_file = blob_root / ".health_check"
        health_file.write_text(datetime.utcnow().isoformat())
        health_file.read_text()
        health_file.unlink(missing_ok=True)

    checks: Dict[str, Any] = {}
    try:
        await asyncio.wait_for(asyncio.to_thread(_fs_probe), HEALTH_CHECK_TIMEOUT_SECONDS)
        checks["storage"] = {"status": "healthy"}
    except asyncio.TimeoutError:
        logger.error("health_check_timeout", component="storage", timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        checks["storage"] = {"status": "unhealthy"}
    except OSError as exc:
        logger.error("health_check_storage_failed", error=str(exc))
        checks["storage"] = {"status": "unhealthy"}

    healthy = all(check["status"] == "healthy" for check in checks.values())
    payload = {
        "status": "ok" if healthy else "degraded",
        "version": __version__,
        "checks": checks,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=payload)
