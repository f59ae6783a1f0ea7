"""structlog setup for pixelprobe.

Every event carries the request's correlation id. Raw user ids never reach
the log stream: ``user_id`` fields and the owner folder embedded in blob keys
and public URLs are replaced by a stable pseudonym, so events for one user
can still be grouped together.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

_request_id: ContextVar[Optional[str]] = ContextVar("pixelprobe_request_id", default=None)

_USER_ID_FIELDS = frozenset({"user_id", "owner_id"})
_OWNER_PATH_FIELDS = frozenset({"key", "output_key", "output_url", "public_url"})
_OWNER_FOLDER = re.compile(r"(uploads/)([^/]+)(?=/)")


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind ``correlation_id`` (or a fresh uuid4) to the current context."""
    value = correlation_id or str(uuid.uuid4())
    _request_id.set(value)
    return value


def get_correlation_id() -> Optional[str]:
    return _request_id.get()


def pseudonymize(user_id: str) -> str:
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
    return f"u_{digest[:12]}"


def _attach_request_id(_logger: Any, _method: str, event: Dict[str, Any]) -> Dict[str, Any]:
    request_id = _request_id.get()
    if request_id:
        event.setdefault("correlation_id", request_id)
    return event


def _mask_owners(_logger: Any, _method: str, event: Dict[str, Any]) -> Dict[str, Any]:
    for field, value in list(event.items()):
        if not isinstance(value, str):
            continue
        if field in _USER_ID_FIELDS:
            event[field] = pseudonymize(value)
        elif field in _OWNER_PATH_FIELDS:
            event[field] = _OWNER_FOLDER.sub(
                lambda match: match.group(1) + pseudonymize(match.group(2)), value
            )
    return event


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = True,
    development_mode: bool = False,
    mask_owners: bool = True,
) -> None:
    """(Re)configure structlog.

    ``development_mode`` or ``json_output=False`` switches to the colored
    console renderer. ``mask_owners=False`` leaves user ids readable, which
    is only meant for local debugging.
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _attach_request_id,
    ]
    if mask_owners:
        processors.append(_mask_owners)
    processors.append(structlog.processors.StackInfoRenderer())

    if development_mode or not json_output:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(
    os.getenv("LOG_LEVEL", "INFO"),
    json_output=_env_flag("LOG_JSON", True),
    development_mode=_env_flag("LOG_DEV_MODE", False),
    mask_owners=_env_flag("LOG_MASK_USER_IDS", True),
)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
