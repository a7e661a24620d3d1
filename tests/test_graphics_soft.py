import pytest

from outworld.graphics_soft import (
    ALPHA_COLOR_INDEX,
    COL_ALPHA,
    COL_PAGE,
    GFX_H,
    GFX_W,
    Color,
    GraphicsSoft,
    PixelFormat,
    Point,
    QuadStrip,
    blend_rgb555,
    calc_step,
)


def make_gfx(use555=False, font=b""):
    gfx = GraphicsSoft(font, use555)
    gfx.init(GFX_W, GFX_H)
    return gfx


def pixel(gfx, page, x, y):
    return gfx.get_page(page)[y * gfx.width + x]


def test_rgb555_white_and_black():
    assert Color(255, 255, 255).rgb555() == 0x7FFF
    assert Color(0, 0, 0).rgb555() == 0


def test_rgb555_red_channel_position():
    assert Color(255, 0, 0).rgb555() == 0x7C00


def test_blend_marks_pixel_and_is_idempotent():
    a = Color(128, 64, 32).rgb555()
    assert blend_rgb555(a, a) == a | 0x8000
    blended = blend_rgb555(0, 0x7FFF)
    assert blended & 0x8000
    assert blend_rgb555(blended, 0x7FFF) == blended


def test_calc_step_vertical_and_unit():
    step, dy = calc_step(Point(5, 0), Point(5, 10))
    assert (step, dy) == (0, 10)
    step, dy = calc_step(Point(0, 0), Point(1, 1))
    assert dy == 1
    assert step == 1 << 16


def test_init_pages_and_invalid_page():
    gfx = make_gfx()
    assert len(gfx.get_page(0)) == GFX_W * GFX_H
    assert set(gfx.get_page(3)) == {0}
    with pytest.raises(ValueError):
        gfx.get_page(4)


def test_clear_buffer():
    gfx = make_gfx()
    gfx.clear_buffer(1, 7)
    assert set(gfx.get_page(1)) == {7}
    assert set(gfx.get_page(0)) == {0}


def test_draw_point_normal_alpha_and_page():
    gfx = make_gfx()
    gfx.draw_point(2, 5, Point(10, 20))
    assert pixel(gfx, 2, 10, 20) == 5
    gfx.clear_buffer(1, 3)
    gfx.draw_point(1, COL_ALPHA, Point(4, 4))
    assert pixel(gfx, 1, 4, 4) == 3 | 8
    gfx.clear_buffer(0, 9)
    gfx.draw_point(3, COL_PAGE, Point(7, 8))
    assert pixel(gfx, 3, 7, 8) == 9
    assert pixel(gfx, 3, 8, 8) == 0


def test_draw_point_scaled():
    gfx = GraphicsSoft(b"", False)
    gfx.init(GFX_W * 2, GFX_H * 2)
    gfx.draw_point(0, 4, Point(10, 20))
    assert pixel(gfx, 0, 20, 40) == 4


def test_draw_quad_strip_fills_rectangle():
    gfx = make_gfx()
    qs = QuadStrip([Point(20, 10), Point(20, 20), Point(10, 20), Point(10, 10)])
    gfx.draw_quad_strip(2, 6, qs)
    assert pixel(gfx, 2, 15, 15) == 6
    assert pixel(gfx, 2, 5, 5) == 0
    assert pixel(gfx, 2, 25, 15) == 0
    page = gfx.get_page(2)
    for idx, value in enumerate(page):
        if value:
            x, y = idx % gfx.width, idx // gfx.width
            assert 10 <= x <= 20 and 10 <= y <= 20


def test_draw_quad_strip_page_color_on_page_zero_does_nothing():
    gfx = make_gfx()
    qs = QuadStrip([Point(20, 10), Point(20, 20), Point(10, 20), Point(10, 10)])
    gfx.draw_quad_strip(0, COL_PAGE, qs)
    assert set(gfx.get_page(0)) == {0}


def test_draw_quad_strip_odd_vertices():
    gfx = make_gfx()
    with pytest.raises(ValueError):
        gfx.draw_quad_strip(0, 1, QuadStrip([Point(0, 0), Point(1, 1), Point(2, 2)]))


def _font_with_full_glyph(char):
    font = bytearray(96 * 8)
    start = (ord(char) - 0x20) * 8
    font[start:start + 8] = b"\xff" * 8
    return bytes(font)


def test_draw_string_char_draws_glyph():
    gfx = make_gfx(font=_font_with_full_glyph("A"))
    gfx.draw_string_char(1, 2, "A", Point(16, 24))
    page = gfx.get_page(1)
    assert sum(1 for v in page if v == 2) == 64
    assert pixel(gfx, 1, 16, 24) == 2
    assert pixel(gfx, 1, 23, 31) == 2
    assert pixel(gfx, 1, 24, 31) == 0


def test_draw_string_char_out_of_range():
    gfx = make_gfx(font=_font_with_full_glyph("A"))
    gfx.draw_string_char(1, 2, "A", Point(GFX_W - 4, 0))
    assert set(gfx.get_page(1)) == {0}


def test_copy_buffer_plain_and_scrolled():
    gfx = make_gfx()
    gfx.draw_point(1, 3, Point(0, 0))
    gfx.copy_buffer(2, 1)
    assert gfx.get_page(2) == gfx.get_page(1)
    gfx.copy_buffer(3, 1, 10)
    assert pixel(gfx, 3, 0, 10) == 3
    assert pixel(gfx, 3, 0, 0) == 0
    gfx.copy_buffer(0, 3, -10)
    assert pixel(gfx, 0, 0, 0) == 3


def test_draw_rect_requires_555():
    gfx = make_gfx()
    with pytest.raises(ValueError):
        gfx.draw_rect(0, 1, Point(0, 0), 10, 10)


def test_draw_rect_555_outline():
    gfx = make_gfx(use555=True)
    gfx.set_palette([Color(255, 255, 255)] * 16)
    gfx.draw_rect(1, 0, Point(10, 10), 5, 5)
    assert pixel(gfx, 1, 10, 10) == 0x7FFF
    assert pixel(gfx, 1, 14, 14) == 0x7FFF
    assert pixel(gfx, 1, 12, 12) == 0


def test_draw_point_alpha_555_blends():
    gfx = make_gfx(use555=True)
    palette = [Color()] * 16
    palette[ALPHA_COLOR_INDEX] = Color(255, 255, 255)
    gfx.set_palette(palette)
    gfx.draw_point(1, COL_ALPHA, Point(1, 1))
    assert pixel(gfx, 1, 1, 1) == blend_rgb555(0, 0x7FFF)


def test_draw_bitmap_clut_and_mismatch():
    gfx = make_gfx()
    data = bytes([4]) * (GFX_W * GFX_H)
    gfx.draw_bitmap(0, data, GFX_W, GFX_H, PixelFormat.CLUT)
    assert set(gfx.get_page(0)) == {4}
    gfx.draw_bitmap(1, b"\x05" * 4, 2, 2, PixelFormat.CLUT)
    assert set(gfx.get_page(1)) == {0}


def test_draw_buffer_maps_palette():
    gfx = make_gfx()
    gfx.set_palette([Color(255, 0, 0), Color(255, 255, 255)])
    gfx.draw_point(0, 1, Point(0, 0))
    pixels = gfx.draw_buffer(0)
    assert len(pixels) == GFX_W * GFX_H
    assert pixels[0] == 0x7FFF
    assert pixels[1] == Color(255, 0, 0).rgb555()


def test_draw_buffer_writes_screenshot(tmp_path):
    gfx = make_gfx()
    gfx.screenshot = True
    gfx.screenshot_dir = tmp_path
    gfx.draw_buffer(0)
    written = tmp_path / "screenshot-1.tga"
    assert written.read_bytes()[2] == 10
    assert gfx.screenshot is False