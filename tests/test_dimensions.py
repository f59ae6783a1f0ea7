import struct

import pytest

from pixelprobe.service.dimensions import (
    ImageDimensions,
    ImageFormat,
    detect_dimensions,
    detect_format,
)


def png_header(width: int, height: int) -> bytes:
    ihdr = struct.pack(">II", width, height) + bytes([8, 2, 0, 0, 0])
    return b"\x89PNG\r\n\x1a\n" + struct.pack(">I", 13) + b"IHDR" + ihdr + b"\x00" * 4


def gif_header(width: int, height: int) -> bytes:
    return b"GIF89a" + struct.pack("<HH", width, height) + b"\x00\x00\x00"


def jpeg_segment(marker: int, payload: bytes) -> bytes:
    return bytes([0xFF, marker]) + struct.pack(">H", len(payload) + 2) + payload


def jpeg_sof(width: int, height: int, marker: int = 0xC0) -> bytes:
    components = b"\x01\x22\x00\x02\x11\x01\x03\x11\x01"
    return jpeg_segment(marker, struct.pack(">BHHB", 8, height, width, 3) + components)


def jpeg(width: int, height: int, *, before: bytes = b"", marker: int = 0xC0) -> bytes:
    return b"\xff\xd8" + before + jpeg_sof(width, height, marker) + b"\xff\xd9"


def riff_webp(body: bytes) -> bytes:
    return b"RIFF" + struct.pack("<I", len(body) + 4) + b"WEBP" + body


def webp_vp8(width: int, height: int) -> bytes:
    frame = b"\x30\x01\x00" + b"\x9d\x01\x2a" + struct.pack("<HH", width, height)
    return riff_webp(b"VP8 " + struct.pack("<I", len(frame)) + frame)


def webp_vp8l(width: int, height: int) -> bytes:
    bits = (width - 1) | ((height - 1) << 14)
    payload = b"\x2f" + struct.pack("<I", bits)
    return riff_webp(b"VP8L" + struct.pack("<I", len(payload)) + payload)


def webp_vp8x(width: int, height: int) -> bytes:
    payload = b"\x10\x00\x00\x00" + (width - 1).to_bytes(3, "little") + (height - 1).to_bytes(3, "little")
    return riff_webp(b"VP8X" + struct.pack("<I", len(payload)) + payload)


@pytest.mark.parametrize("width,height", [(16, 16), (1920, 1080), (65535, 65535)])
def test_png_dimensions(width, height):
    assert detect_dimensions(png_header(width, height)) == (width, height)


def test_png_with_zero_width_is_rejected():
    assert detect_dimensions(png_header(0, 100)) is None


def test_gif_dimensions_are_little_endian():
    result = detect_dimensions(gif_header(0x0201, 0x0403))
    assert result == ImageDimensions(width=513, height=1027)


def test_gif87a_signature_is_recognized():
    header = b"GIF87a" + struct.pack("<HH", 320, 200)
    assert detect_dimensions(header) == (320, 200)


def test_jpeg_baseline_frame():
    assert detect_dimensions(jpeg(640, 480)) == (640, 480)


def test_jpeg_progressive_frame():
    assert detect_dimensions(jpeg(1024, 768, marker=0xC2)) == (1024, 768)


def test_jpeg_skips_app_and_comment_segments():
    before = (
        jpeg_segment(0xE0, b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00")
        + jpeg_segment(0xE1, b"Exif\x00\x00" + b"\xab" * 4000)
        + jpeg_segment(0xFE, b"generated by a test")
    )
    assert detect_dimensions(jpeg(3000, 2000, before=before)) == (3000, 2000)


@pytest.mark.parametrize("marker", [0xC4, 0xC8, 0xCC])
def test_jpeg_non_frame_markers_in_sof_range_are_skipped(marker):
    # DHT/JPG/DAC segments whose bytes would decode to a bogus size if read as SOF
    decoy = jpeg_segment(marker, struct.pack(">BHHB", 8, 1, 1, 0) + b"\x00" * 8)
    assert detect_dimensions(jpeg(800, 600, before=decoy)) == (800, 600)


def test_jpeg_fill_bytes_before_marker():
    assert detect_dimensions(jpeg(50, 70, before=b"\xff\xff\xff")) == (50, 70)


def test_jpeg_stray_bytes_between_segments():
    assert detect_dimensions(jpeg(50, 70, before=b"\x00\x12\x34")) == (50, 70)


def test_jpeg_standalone_markers_have_no_length_field():
    before = b"\xff\xd0" + b"\xff\x01" + jpeg_segment(0xDB, b"\x00" * 65)
    assert detect_dimensions(jpeg(321, 123, before=before)) == (321, 123)


def test_jpeg_scan_data_before_frame_header_fails():
    before = jpeg_segment(0xDA, b"\x01\x01\x00\x00\x3f\x00") + b"\x00" * 20
    assert detect_dimensions(jpeg(10, 10, before=before)) is None


def test_jpeg_segment_length_below_two_fails():
    before = b"\xff\xe0\x00\x01" + b"\x00" * 16
    assert detect_dimensions(jpeg(10, 10, before=before)) is None


def test_jpeg_segment_length_past_end_fails():
    data = b"\xff\xd8" + b"\xff\xe0\xff\xf0" + b"\x00" * 40
    assert detect_dimensions(data) is None


def test_jpeg_frame_header_cut_short_fails():
    data = b"\xff\xd8\xff\xc0\x00\x11\x08\x01"
    assert detect_dimensions(data) is None


def test_jpeg_without_frame_header_fails():
    data = b"\xff\xd8" + jpeg_segment(0xE0, b"\x00" * 30) + b"\xff\xd9"
    assert detect_dimensions(data) is None


def test_jpeg_zero_height_fails():
    assert detect_dimensions(jpeg(100, 0)) is None


def test_webp_lossy():
    assert detect_dimensions(webp_vp8(550, 368)) == (550, 368)


def test_webp_lossy_ignores_scale_bits():
    data = bytearray(webp_vp8(550, 368))
    struct.pack_into("<HH", data, 26, 550 | (2 << 14), 368 | (1 << 14))
    assert detect_dimensions(bytes(data)) == (550, 368)


def test_webp_lossless():
    assert detect_dimensions(webp_vp8l(386, 395)) == (386, 395)


def test_webp_lossless_max_size():
    assert detect_dimensions(webp_vp8l(16384, 16384)) == (16384, 16384)


def test_webp_extended():
    assert detect_dimensions(webp_vp8x(1200, 628)) == (1200, 628)


def test_webp_extended_beyond_fourteen_bits():
    assert detect_dimensions(webp_vp8x(20000, 70000)) == (20000, 70000)


def test_webp_extended_reads_exactly_three_bytes_per_field():
    data = webp_vp8x(300, 200) + b"\xff" * 8
    assert detect_dimensions(data) == (300, 200)


def test_webp_unknown_chunk_fails():
    data = riff_webp(b"VP8Z" + b"\x00" * 20)
    assert detect_dimensions(data) is None


def test_riff_without_webp_tag_is_not_an_image():
    data = b"RIFF" + struct.pack("<I", 100) + b"WAVE" + b"\x00" * 30
    assert detect_format(data) is None
    assert detect_dimensions(data) is None


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\x00",
        b"not an image at all, just some text",
        b"\x89PNX" + b"\x00" * 30,
        b"%PDF-1.7\n" + b"\x00" * 40,
    ],
)
def test_unrecognized_buffers(data):
    assert detect_format(data) is None
    assert detect_dimensions(data) is None


@pytest.mark.parametrize(
    "sample,expected",
    [
        (png_header(800, 600), (800, 600)),
        (gif_header(32, 48), (32, 48)),
        (jpeg(640, 480, before=jpeg_segment(0xE0, b"\x00" * 14)), (640, 480)),
        (webp_vp8(550, 368), (550, 368)),
        (webp_vp8l(386, 395), (386, 395)),
        (webp_vp8x(1200, 628), (1200, 628)),
    ],
)
def test_truncated_prefixes_never_raise(sample, expected):
    for end in range(len(sample)):
        result = detect_dimensions(sample[:end])
        assert result is None or result == expected
    assert detect_dimensions(sample[:4]) is None


@pytest.mark.parametrize("minimum,builder", [(24, png_header), (10, gif_header)])
def test_header_one_byte_short_fails(minimum, builder):
    sample = builder(100, 100)
    assert detect_dimensions(sample[:minimum]) == (100, 100)
    assert detect_dimensions(sample[: minimum - 1]) is None


def test_accepts_bytearray_and_memoryview():
    sample = png_header(12, 34)
    assert detect_dimensions(bytearray(sample)) == (12, 34)
    assert detect_dimensions(memoryview(sample)) == (12, 34)


def test_detection_is_repeatable():
    sample = jpeg(640, 480)
    assert detect_dimensions(sample) == detect_dimensions(sample)


def test_non_bytes_input_is_a_type_error():
    with pytest.raises(TypeError):
        detect_dimensions("\x89PNG")


def test_detect_format_and_mime_type():
    assert detect_format(png_header(1, 1)) is ImageFormat.PNG
    assert detect_format(gif_header(1, 1)) is ImageFormat.GIF
    assert detect_format(jpeg(1, 1)) is ImageFormat.JPEG
    assert detect_format(webp_vp8l(1, 1)) is ImageFormat.WEBP
    assert ImageFormat.JPEG.mime_type == "image/jpeg"
    assert ImageFormat.WEBP.mime_type == "image/webp"


def test_detect_format_only_checks_signature():
    assert detect_format(b"\xff\xd8") is ImageFormat.JPEG
    assert detect_dimensions(b"\xff\xd8") is None
