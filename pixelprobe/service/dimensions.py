"""Pixel dimension sniffing for encoded image buffers.

Width and height are read straight out of the PNG, GIF, JPEG and WebP
headers; nothing is decoded. Every read is bounds-checked first, so a
truncated, malformed or unrecognized buffer yields ``None`` rather than an
exception.
"""

from __future__ import annotations

import struct
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


class ImageFormat(str, Enum):
    """Container formats recognized by their leading magic bytes."""

    PNG = "png"
    GIF = "gif"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"


class ImageDimensions(NamedTuple):
    width: int
    height: int


_PNG_MAGIC = b"\x89PNG"
_GIF_MAGIC = b"GIF"
_JPEG_MAGIC = b"\xff\xd8"
_RIFF_MAGIC = b"RIFF"
_WEBP_MAGIC = b"WEBP"

_U16_BE = struct.Struct(">H")
_U16_LE = struct.Struct("<H")
_U32_BE = struct.Struct(">I")
_U32_LE = struct.Struct("<I")

# SOF0..SOF15 minus DHT (C4), JPG (C8) and DAC (CC)
_JPEG_SOF_MARKERS = frozenset(range(0xC0, 0xD0)) - {0xC4, 0xC8, 0xCC}
# TEM, RST0..RST7 and SOI carry no length field
_JPEG_STANDALONE_MARKERS = frozenset({0x01, 0xD8, *range(0xD0, 0xD8)})
_JPEG_EOI = 0xD9
_JPEG_SOS = 0xDA

_VP8_DIMENSION_MASK = 0x3FFF


def _as_bytes(buffer: BytesLike) -> bytes:
    if isinstance(buffer, bytes):
        return buffer
    if isinstance(buffer, (bytearray, memoryview)):
        return bytes(buffer)
    raise TypeError(f"expected a bytes-like buffer, got {type(buffer).__name__}")


def _unpack(codec: struct.Struct, data: bytes, offset: int) -> Optional[int]:
    if offset < 0 or offset + codec.size > len(data):
        return None
    return codec.unpack_from(data, offset)[0]


def _unpack_u24_le(data: bytes, offset: int) -> Optional[int]:
    if offset < 0 or offset + 3 > len(data):
        return None
    return data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)


def _dimensions(width: Optional[int], height: Optional[int]) -> Optional[ImageDimensions]:
    if width is None or height is None:
        return None
    if width <= 0 or height <= 0:
        return None
    return ImageDimensions(width, height)


def _png_dimensions(data: bytes) -> Optional[ImageDimensions]:
    # IHDR is always the first chunk: width and height follow its tag
    return _dimensions(_unpack(_U32_BE, data, 16), _unpack(_U32_BE, data, 20))


def _gif_dimensions(data: bytes) -> Optional[ImageDimensions]:
    # Logical screen descriptor
    return _dimensions(_unpack(_U16_LE, data, 6), _unpack(_U16_LE, data, 8))


def _jpeg_dimensions(data: bytes) -> Optional[ImageDimensions]:
    """Walk the marker segments after SOI until a Start-Of-Frame header."""

    offset = 2
    limit = len(data) - 8
    while offset < limit:
        if data[offset] != 0xFF:
            offset += 1
            continue
        marker = data[offset + 1]
        if marker == 0xFF:
            # fill byte before the real marker code
            offset += 1
            continue
        if marker in _JPEG_SOF_MARKERS:
            return _dimensions(
                _unpack(_U16_BE, data, offset + 7),
                _unpack(_U16_BE, data, offset + 5),
            )
        if marker in _JPEG_STANDALONE_MARKERS:
            offset += 2
            continue
        if marker in (_JPEG_EOI, _JPEG_SOS):
            # entropy-coded data or end of image; no frame header can follow
            return None
        length = _unpack(_U16_BE, data, offset + 2)
        if length is None or length < 2:
            return None
        offset += 2 + length
    return None


def _webp_dimensions(data: bytes) -> Optional[ImageDimensions]:
    chunk = data[12:16]
    if chunk == b"VP8 ":
        width = _unpack(_U16_LE, data, 26)
        height = _unpack(_U16_LE, data, 28)
        if width is None or height is None:
            return None
        return _dimensions(width & _VP8_DIMENSION_MASK, height & _VP8_DIMENSION_MASK)
    if chunk == b"VP8L":
        bits = _unpack(_U32_LE, data, 21)
        if bits is None:
            return None
        return _dimensions(
            (bits & _VP8_DIMENSION_MASK) + 1,
            ((bits >> 14) & _VP8_DIMENSION_MASK) + 1,
        )
    if chunk == b"VP8X":
        # canvas width-1 in bytes 24..26, height-1 in bytes 27..29
        width = _unpack_u24_le(data, 24)
        height = _unpack_u24_le(data, 27)
        if width is None or height is None:
            return None
        return _dimensions(width + 1, height + 1)
    return None


_EXTRACTORS: Dict[ImageFormat, Callable[[bytes], Optional[ImageDimensions]]] = {
    ImageFormat.PNG: _png_dimensions,
    ImageFormat.GIF: _gif_dimensions,
    ImageFormat.JPEG: _jpeg_dimensions,
    ImageFormat.WEBP: _webp_dimensions,
}


def detect_format(buffer: BytesLike) -> Optional[ImageFormat]:
    """Return the format claimed by the buffer's magic bytes, if any.

    Only the signature is checked; the rest of the header may still be
    unusable, in which case :func:`detect_dimensions` returns ``None``.
    """

    data = _as_bytes(buffer)
    if data.startswith(_PNG_MAGIC):
        return ImageFormat.PNG
    if data.startswith(_GIF_MAGIC):
        return ImageFormat.GIF
    if data.startswith(_JPEG_MAGIC):
        return ImageFormat.JPEG
    if data.startswith(_RIFF_MAGIC) and data[8:12] == _WEBP_MAGIC:
        return ImageFormat.WEBP
    return None


def detect_dimensions(buffer: BytesLike) -> Optional[ImageDimensions]:
    """Return ``(width, height)`` read from the image header, or ``None``.

    ``None`` covers unrecognized magic bytes, truncated buffers and headers
    whose offsets do not line up. The function is pure: it keeps no state
    between calls and never reads past the end of ``buffer``.

    Raises:
        TypeError: ``buffer`` is not bytes-like.
    """

    data = _as_bytes(buffer)
    image_format = detect_format(data)
    if image_format is None:
        return None
    return _EXTRACTORS[image_format](data)


__all__ = [
    "BytesLike",
    "ImageDimensions",
    "ImageFormat",
    "detect_dimensions",
    "detect_format",
]
