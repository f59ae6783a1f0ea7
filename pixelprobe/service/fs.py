import re
from pathlib import Path
from typing import Optional

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w\-_\. ]", re.ASCII)
MAX_FILENAME_LENGTH = 255


class PathTraversalError(ValueError):
    """Raised when a path escapes the intended base directory."""


def safe_join(base: Path, relative: str) -> Path:
    """Join ``relative`` to ``base`` while preventing path traversal.

    The resulting path must resolve within ``base``; absolute paths or ``..``
    segments that would escape the base directory raise ``PathTraversalError``.
    """

    base_resolved = base.resolve()
    rel_path = Path(relative)
    if rel_path.is_absolute():
        raise PathTraversalError("absolute paths not allowed")

    candidate = (base_resolved / rel_path).resolve()
    if candidate == base_resolved or base_resolved in candidate.parents:
        return candidate

    raise PathTraversalError("path traversal detected")


def sanitize_filename(raw_filename: Optional[str], *, fallback: str = "untitled") -> str:
    """Reduce an uploaded filename to a single safe path component."""

    safe = _UNSAFE_FILENAME_CHARS.sub("_", raw_filename or "")
    safe = safe.lstrip(".")  # no hidden files
    safe = safe[:MAX_FILENAME_LENGTH]
    return safe or fallback
