#!/usr/bin/env python3
"""Print format, pixel dimensions and aspect bucket for image files.

Usage:
    python scripts/probe_image.py photo.jpg banner.webp
    python scripts/probe_image.py --default 16:9 *.png

Each file produces one JSON line. The exit status is 1 when any file could
not be read or its dimensions were not recognized.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import TextIO

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# structlog prints to stdout; keep info-level events out of the JSON lines
os.environ.setdefault("LOG_LEVEL", "WARNING")


def probe_file(path: Path, default_label: str) -> dict:
    """Classify one file; I/O problems are reported in the result."""
    from pixelprobe.service.aspect import AspectRatio
    from pixelprobe.service.uploads import classify_image

    try:
        data = path.read_bytes()
    except OSError as exc:
        return {"path": str(path), "error": exc.strerror or str(exc), "detected": False}

    classification = classify_image(data, default=AspectRatio.parse(default_label))
    dimensions = classification.dimensions
    return {
        "path": str(path),
        "format": classification.format.value if classification.format else None,
        "width": dimensions.width if dimensions else None,
        "height": dimensions.height if dimensions else None,
        "aspect_ratio": classification.aspect_ratio.value,
        "detected": classification.detected,
        "size": len(data),
    }


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sniff image dimensions and aspect ratio")
    parser.add_argument("paths", nargs="+", type=Path, help="Image files to inspect")
    parser.add_argument(
        "--default",
        default="1:1",
        help="Aspect ratio reported when dimensions are not recognized (default: 1:1)",
    )
    args = parser.parse_args(argv)

    try:
        from pixelprobe.service.aspect import AspectRatio

        AspectRatio.parse(args.default)
    except ValueError as exc:
        parser.error(str(exc))

    all_detected = True
    for path in args.paths:
        result = probe_file(path, args.default)
        all_detected = all_detected and result["detected"]
        print(json.dumps(result), file=out or sys.stdout)
    return 0 if all_detected else 1


if __name__ == "__main__":
    sys.exit(main())
