"""Decoding of uncompressed Windows BMP images to RGB or RGBA pixels."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_FILE_HEADER_SIZE = 14
_INFO_HEADER_SIZE = 40


@dataclass(frozen=True)
class Bitmap:
    """Decoded pixels, top row first, ``bpp`` bytes per pixel (RGB or RGBA)."""

    width: int
    height: int
    bpp: int
    pixels: bytes


def _palette_lookup(palette: bytes, bpp: int, color_key: int) -> list[bytes]:
    palette = palette.ljust(256 * 4, b"\0")
    table = []
    for color, (b, g, r, _) in enumerate(struct.iter_unpack("4B", palette)):
        if bpp == 4:
            transparent = color == 0 or color_key == ((r << 16) | (g << 8) | b)
            table.append(bytes((r, g, b, 0 if transparent else 255)))
        else:
            table.append(bytes((r, g, b)))
    return table


def decode_bitmap(data: bytes, alpha: bool = False, color_key: int = -1) -> Bitmap:
    """Decode an 8-bit paletted or 32-bit BMP image.

    Output has 4 bytes per pixel when ``alpha`` is set or ``color_key`` is
    non-negative, 3 otherwise. Raises ValueError for unsupported images.
    """
    if data[:2] != b"BM":
        raise ValueError("not a BMP image")
    (image_offset,) = struct.unpack_from("<I", data, 0xA)
    width, height = struct.unpack_from("<ii", data, 0x12)
    (depth,) = struct.unpack_from("<H", data, 0x1C)
    (compression,) = struct.unpack_from("<I", data, 0x1E)
    if depth not in (8, 32) or compression != 0:
        raise ValueError(f"unhandled bitmap depth {depth} compression {compression}")
    bpp = 3 if (not alpha and color_key < 0) else 4
    rows = []
    if depth == 8:
        start = _FILE_HEADER_SIZE + _INFO_HEADER_SIZE
        table = _palette_lookup(data[start:start + 256 * 4], bpp, color_key)
        for y in range(height):
            src = data[image_offset + y * width:image_offset + (y + 1) * width]
            rows.append(b"".join(table[color] for color in src))
    else:
        if bpp != 3:
            raise ValueError("32-bit bitmaps are decoded without alpha")
        row_size = width * 4
        for y in range(height):
            src = data[image_offset + y * row_size:image_offset + (y + 1) * row_size]
            rows.append(b"".join(
                bytes(((color >> 16) & 255, (color >> 8) & 255, color & 255))
                for (color,) in struct.iter_unpack("<I", src)
            ))
    rows.reverse()
    return Bitmap(width, height, bpp, b"".join(rows))