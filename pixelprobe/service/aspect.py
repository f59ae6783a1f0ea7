from __future__ import annotations

from enum import Enum
from typing import Dict


class AspectRatio(str, Enum):
    """Canonical gallery buckets.

    Declaration order is the tie-break order for :func:`closest_aspect_ratio`.
    """

    SQUARE = "1:1"
    WIDESCREEN = "16:9"
    VERTICAL = "9:16"
    STANDARD = "4:3"
    PORTRAIT = "3:4"

    @classmethod
    def parse(cls, label: str) -> "AspectRatio":
        """Return the member for ``label`` such as ``"16:9"``."""
        try:
            return cls(label.strip())
        except (AttributeError, ValueError):
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(
                f"unsupported aspect ratio {label!r}; expected one of {allowed}"
            ) from None


DEFAULT_ASPECT_RATIO = AspectRatio.SQUARE

_RATIO_VALUES: Dict[AspectRatio, float] = {
    AspectRatio.SQUARE: 1.0,
    AspectRatio.WIDESCREEN: 16 / 9,
    AspectRatio.VERTICAL: 9 / 16,
    AspectRatio.STANDARD: 4 / 3,
    AspectRatio.PORTRAIT: 3 / 4,
}


def closest_aspect_ratio(width: int, height: int) -> AspectRatio:
    """Map a pixel size onto the nearest canonical aspect ratio.

    Distance is the absolute difference between ``width / height`` and each
    bucket's ratio; the first bucket in declaration order wins ties.

    Raises:
        ValueError: ``width`` or ``height`` is not positive.
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"dimensions must be positive, got {width}x{height}")
    ratio = width / height
    # min() keeps the first of equally distant candidates
    return min(AspectRatio, key=lambda candidate: abs(ratio - _RATIO_VALUES[candidate]))


__all__ = ["AspectRatio", "DEFAULT_ASPECT_RATIO", "closest_aspect_ratio"]
