"""Writers for run-length encoded TGA and 8-bit BMP screenshots."""

from __future__ import annotations

import os
import struct
from typing import Sequence, Union

TGA_IMAGE_TYPE_RLE_TRUE_COLOR = 10
TGA_DIRECTION_TOP = 1 << 5
TGA_HEADER_SIZE = 18
TAG_BM = 0x4D42

_MAX_RUN = 127


def encode_tga(rgb555: Sequence[int], width: int, height: int) -> bytes:
    """Encode 16-bit RGB555 pixels as a run-length encoded TGA image."""
    header = struct.pack(
        "<BBBHHBHHHHBB",
        0, 0, TGA_IMAGE_TYPE_RLE_TRUE_COLOR,
        0, 0, 0,
        0, 0, width, height,
        16, TGA_DIRECTION_TOP,
    )
    pixels = list(rgb555[:width * height])
    if not pixels:
        return header
    out = bytearray(header)

    def packet(count: int, color: int) -> bytes:
        return bytes((count | 0x80, color & 255, (color >> 8) & 255))

    prev = pixels[0]
    count = 0
    for color in pixels[1:]:
        if color == prev and count < _MAX_RUN:
            count += 1
            continue
        out += packet(count, prev)
        count = 0
        prev = color
    if count != 0:
        out += packet(count, prev)
    return bytes(out)


def save_tga(path: Union[str, os.PathLike], rgb555: Sequence[int], width: int, height: int) -> None:
    with open(path, "wb") as fp:
        fp.write(encode_tga(rgb555, width, height))


def encode_bmp(bits: bytes, palette: bytes, width: int, height: int) -> bytes:
    """Encode 8-bit paletted pixels (top row first) with a 256-entry RGB palette."""
    align_width = (width + 3) & ~3
    image_size = align_width * height
    data_offset = 14 + 40 + 4 * 256
    out = bytearray(struct.pack("<HIHHI", TAG_BM, data_offset + image_size, 0, 0, data_offset))
    out += struct.pack("<IiiHHIIiiII", 40, width, height, 1, 8, 0, image_size, 0, 0, 0, 0)
    palette = bytes(palette).ljust(256 * 3, b"\0")
    for r, g, b in struct.iter_unpack("3B", palette[:256 * 3]):
        out += bytes((b, g, r, 0))
    pad = bytes(align_width - width)
    for y in reversed(range(height)):
        out += bits[y * width:(y + 1) * width]
        out += pad
    return bytes(out)


def save_bmp(path: Union[str, os.PathLike], bits: bytes, palette: bytes, width: int, height: int) -> None:
    with open(path, "wb") as fp:
        fp.write(encode_bmp(bits, palette, width, height))