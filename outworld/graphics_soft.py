"""Software renderer drawing polygons, characters and points into page buffers.

Pages hold one value per pixel: a palette index (0-15) in paletted mode, or
an RGB555 colour when the renderer is created with ``use555``.
"""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Optional, Sequence, Union

from outworld.screenshot import save_tga

log = logging.getLogger(__name__)

GFX_W = 320
GFX_H = 200
NUM_PAGES = 4
PALETTE_SIZE = 16

COL_ALPHA = 0x10
COL_PAGE = 0x11
COL_BMP = 0xFF
ALPHA_COLOR_INDEX = 12

_ALPHA_BIT = 8
_CHAR_SIZE = 8
_FONT_FIRST_CHAR = 0x20


class PixelFormat(IntEnum):
    CLUT = 0
    RGB555 = 1
    RGB = 2
    RGBA = 3


def _int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


@dataclass(frozen=True)
class Point:
    x: int
    y: int

    def scaled(self, u: int, v: int) -> "Point":
        """Scale by 16.16 fixed-point factors."""
        return Point((self.x * u) >> 16, (self.y * v) >> 16)


@dataclass
class QuadStrip:
    """Polygon outline: the right edge top-down, then the left edge bottom-up."""

    vertices: list[Point] = field(default_factory=list)

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)


@dataclass(frozen=True)
class Color:
    r: int = 0
    g: int = 0
    b: int = 0

    def rgb555(self) -> int:
        return ((self.r >> 3) << 10) | ((self.g >> 3) << 5) | (self.b >> 3)


def blend_rgb555(a: int, b: int) -> int:
    """Average two RGB555 colours; bit 15 marks a pixel already blended."""
    rb_mask = 0x7C1F
    g_mask = 0x03E0
    if a & 0x8000:
        return a
    r = 0x8000
    r |= (((a & rb_mask) + (b & rb_mask)) >> 1) & rb_mask
    r |= (((a & g_mask) + (b & g_mask)) >> 1) & g_mask
    return r


def calc_step(p1: Point, p2: Point) -> tuple[int, int]:
    """Return the 16.16 x increment per line from ``p1`` to ``p2`` and the line count."""
    dy = (p2.y - p1.y) & 0xFFFF
    delta = 1 if dy <= 1 else dy
    step = (((p2.x - p1.x) * (0x4000 // delta)) << 2) & 0xFFFFFFFF
    return step, dy


class GraphicsSoft:
    """Four off-screen pages with polygon, text and point rasterisation."""

    def __init__(self, font: bytes = b"", use555: bool = False) -> None:
        self.font = bytes(font)
        self.use555 = use555
        self.palette: list[Color] = [Color() for _ in range(PALETTE_SIZE)]
        self.pages: list[list[int]] = []
        self.width = 0
        self.height = 0
        self._u = 0
        self._v = 0
        self._draw_page: list[int] = []
        self.screenshot = False
        self.screenshot_dir: Union[str, os.PathLike] = "."
        self._screenshot_num = 1

    def _x_scale(self, x: int) -> int:
        return (x * self._u) >> 16

    def _y_scale(self, y: int) -> int:
        return (y * self._v) >> 16

    def init(self, width: int, height: int) -> None:
        """Allocate the pages for a ``width`` x ``height`` target."""
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid size {width}x{height}")
        self._u = (width << 16) // GFX_W
        self._v = (height << 16) // GFX_H
        self.width = width
        self.height = height
        self.pages = [[0] * (width * height) for _ in range(NUM_PAGES)]
        self._draw_page = self.pages[2]

    def set_palette(self, colors: Sequence[Color]) -> None:
        for i, color in enumerate(colors[:PALETTE_SIZE]):
            self.palette[i] = color

    def get_page(self, num: int) -> list[int]:
        if not 0 <= num < NUM_PAGES:
            raise ValueError(f"invalid page {num}")
        return self.pages[num]

    def _select(self, num: int) -> None:
        self._draw_page = self.get_page(num)

    def _color_value(self, color: int) -> int:
        return self.palette[color].rgb555() if self.use555 else color & 0xFF

    # Horizontal spans

    def _line_normal(self, x1: int, x2: int, y: int, color: int) -> None:
        xmin, xmax = min(x1, x2), max(x1, x2)
        offset = y * self.width + xmin
        count = xmax - xmin + 1
        self._draw_page[offset:offset + count] = [self._color_value(color)] * count

    def _line_alpha(self, x1: int, x2: int, y: int, color: int) -> None:
        xmin, xmax = min(x1, x2), max(x1, x2)
        offset = y * self.width + xmin
        page = self._draw_page
        if self.use555:
            alpha = self.palette[ALPHA_COLOR_INDEX].rgb555()
            for k in range(offset, offset + xmax - xmin + 1):
                page[k] = blend_rgb555(page[k], alpha)
        else:
            for k in range(offset, offset + xmax - xmin + 1):
                page[k] |= _ALPHA_BIT

    def _line_page(self, x1: int, x2: int, y: int, color: int) -> None:
        if self._draw_page is self.pages[0]:
            return
        xmin, xmax = min(x1, x2), max(x1, x2)
        offset = y * self.width + xmin
        end = offset + xmax - xmin + 1
        self._draw_page[offset:end] = self.pages[0][offset:end]

    def _draw_polygon(self, color: int, qs: QuadStrip) -> None:
        vertices = list(qs.vertices)
        if len(vertices) < 2 or len(vertices) % 2:
            raise ValueError(f"invalid vertex count {len(vertices)}")
        if self.width != GFX_W or self.height != GFX_H:
            vertices = [p.scaled(self._u, self._v) for p in vertices]

        if color == COL_PAGE:
            draw_line = self._line_page
        elif color == COL_ALPHA:
            draw_line = self._line_alpha
        else:
            draw_line = self._line_normal

        i = 0
        j = len(vertices) - 1
        x2 = vertices[i].x
        x1 = vertices[j].x
        hliney = _int16(min(vertices[i].y, vertices[j].y))
        i += 1
        j -= 1
        cpt1 = (x1 << 16) & 0xFFFFFFFF
        cpt2 = (x2 << 16) & 0xFFFFFFFF

        remaining = len(vertices)
        while True:
            remaining -= 2
            if remaining == 0:
                return
            step1, _ = calc_step(vertices[j + 1], vertices[j])
            step2, h = calc_step(vertices[i - 1], vertices[i])
            i += 1
            j -= 1
            cpt1 = (cpt1 & 0xFFFF0000) | 0x7FFF
            cpt2 = (cpt2 & 0xFFFF0000) | 0x8000
            if h == 0:
                cpt1 = (cpt1 + step1) & 0xFFFFFFFF
                cpt2 = (cpt2 + step2) & 0xFFFFFFFF
                continue
            for _ in range(h):
                if hliney >= 0:
                    x1 = _int16(cpt1 >> 16)
                    x2 = _int16(cpt2 >> 16)
                    if x1 < self.width and x2 >= 0:
                        x1 = max(x1, 0)
                        x2 = min(x2, self.width - 1)
                        draw_line(x1, x2, hliney, color)
                cpt1 = (cpt1 + step1) & 0xFFFFFFFF
                cpt2 = (cpt2 + step2) & 0xFFFFFFFF
                hliney = _int16(hliney + 1)
                if hliney >= self.height:
                    return

    # Drawing operations

    def draw_point(self, buffer: int, color: int, pt: Point) -> None:
        self._select(buffer)
        x = self._x_scale(_int16(pt.x))
        y = self._y_scale(_int16(pt.y))
        if not (0 <= x < self.width and 0 <= y < self.height):
            return
        offset = y * self.width + x
        page = self._draw_page
        if color == COL_ALPHA:
            if self.use555:
                page[offset] = blend_rgb555(page[offset], self.palette[ALPHA_COLOR_INDEX].rgb555())
            else:
                page[offset] |= _ALPHA_BIT
        elif color == COL_PAGE:
            page[offset] = self.pages[0][offset]
        else:
            page[offset] = self._color_value(color)

    def draw_quad_strip(self, buffer: int, color: int, qs: QuadStrip) -> None:
        self._select(buffer)
        self._draw_polygon(color, qs)

    def draw_string_char(self, buffer: int, color: int, c: Union[str, int], pt: Point) -> None:
        self._select(buffer)
        code = ord(c) if isinstance(c, str) else c
        x = pt.x & 0xFFFF
        y = pt.y & 0xFFFF
        if x > GFX_W - _CHAR_SIZE or y > GFX_H - _CHAR_SIZE:
            return
        x = self._x_scale(x)
        y = self._y_scale(y)
        start = ((code & 0xFF) - _FONT_FIRST_CHAR) * _CHAR_SIZE
        glyph = self.font[start:start + _CHAR_SIZE] if start >= 0 else b""
        value = self._color_value(color)
        offset = x + y * self.width
        for row, bits in enumerate(glyph):
            for col in range(_CHAR_SIZE):
                if bits & (1 << (7 - col)):
                    self._draw_page[offset + row * self.width + col] = value

    def draw_bitmap(self, buffer: int, data: Union[bytes, Sequence[int]], width: int,
                    height: int, fmt: PixelFormat) -> None:
        """Copy a full-page bitmap; other sizes and formats are logged and ignored."""
        if width == self.width and height == self.height:
            count = width * height
            if not self.use555 and fmt == PixelFormat.CLUT:
                self.get_page(buffer)[:] = list(data[:count])
                return
            if self.use555 and fmt == PixelFormat.RGB555:
                if isinstance(data, (bytes, bytearray)):
                    pixels = list(struct.unpack_from(f"<{count}H", data))
                else:
                    pixels = list(data[:count])
                self.get_page(buffer)[:] = pixels
                return
        log.warning("GraphicsSoft::drawBitmap() unhandled fmt %d w %d h %d", fmt, width, height)

    def clear_buffer(self, num: int, color: int) -> None:
        self.get_page(num)[:] = [self._color_value(color)] * (self.width * self.height)

    def copy_buffer(self, dst: int, src: int, vscroll: int = 0) -> None:
        dst_page = self.get_page(dst)
        src_page = self.get_page(src)
        size = self.width * self.height
        if vscroll == 0:
            dst_page[:] = src_page
        elif -199 <= vscroll <= 199:
            dy = self._y_scale(vscroll)
            if dy < 0:
                count = (self.height + dy) * self.width
                dst_page[0:count] = src_page[-dy * self.width:-dy * self.width + count]
            else:
                start = dy * self.width
                dst_page[start:size] = src_page[0:size - start]

    def draw_rect(self, num: int, color: int, pt: Point, width: int, height: int) -> None:
        """Outline a rectangle; only available in RGB555 mode."""
        if not self.use555:
            raise ValueError("rectangles are drawn in RGB555 mode only")
        self._select(num)
        value = self.palette[color].rgb555()
        x1 = self._x_scale(pt.x)
        y1 = self._y_scale(pt.y)
        x2 = self._x_scale(pt.x + width - 1)
        y2 = self._y_scale(pt.y + height - 1)
        page = self._draw_page
        for x in range(x1, x2 + 1):
            page[y1 * self.width + x] = value
            page[y2 * self.width + x] = value
        for y in range(y1, y2 + 1):
            page[y * self.width + x1] = value
            page[y * self.width + x2] = value

    def draw_buffer(self, num: int) -> list[int]:
        """Return page ``num`` as RGB555 pixels, saving a screenshot if requested."""
        page = self.get_page(num)
        if self.use555:
            pixels = list(page)
        else:
            table = [color.rgb555() for color in self.palette]
            pixels = [table[value & 0x0F] for value in page]
        if self.screenshot:
            path = Path(self.screenshot_dir) / f"screenshot-{self._screenshot_num}.tga"
            save_tga(path, pixels, self.width, self.height)
            log.info("Written '%s'", path)
            self._screenshot_num += 1
            self.screenshot = False
        return pixels


def _resolve(value: Optional[int]) -> int:
    return 0 if value is None else value