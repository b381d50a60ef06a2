import io

import pytest

from vncrec.canvas import (
    Bounds,
    Color,
    RGBAImage,
    VncCanvas,
    decode_raw,
    draw_image,
    fill_rect,
    make_rect,
    make_rect_from_vnc_rect,
    read_bytes,
    read_color,
    read_uint8,
    read_uint16,
    read_uint32,
)
from vncrec.types import PixelFormat, ProtocolError, Rectangle

RED = Color(200, 10, 10)
BLUE = Color(10, 10, 200)


def test_set_changed_source_case():
    canvas = VncCanvas()
    canvas.set_changed(Rectangle(x=1, y=1, width=1024, height=64))
    assert (64, 0) in canvas.changed
    assert (64, 1) in canvas.changed
    assert (64, 4) in canvas.changed


def test_reset_clears_changed():
    canvas = VncCanvas()
    canvas.set_changed(Rectangle(x=0, y=0, width=16, height=16))
    assert canvas.changed == {(0, 0)}
    canvas.reset(None)
    assert canvas.changed == set()


def test_image_set_and_at_round_trip():
    img = RGBAImage(3, 2)
    img.set(2, 1, RED)
    assert img.at(2, 1) == RED
    assert img.at(0, 0) == Color(0, 0, 0, 0)


def test_set_outside_is_ignored():
    img = RGBAImage(2, 2)
    before = bytes(img.pix)
    img.set(5, 5, RED)
    img.set(-1, 0, RED)
    assert bytes(img.pix) == before
    assert img.at(5, 5) == Color(0, 0, 0, 0)


def test_fill_rect_clips_to_image():
    img = RGBAImage(4, 4)
    fill_rect(img, Bounds(2, 2, 10, 10), BLUE)
    assert img.at(3, 3) == BLUE
    assert img.at(2, 2) == BLUE
    assert img.at(1, 1) == Color(0, 0, 0, 0)


def test_draw_image_offsets_source():
    source = RGBAImage(2, 2)
    fill_rect(source, source.bounds, RED)
    target = RGBAImage(5, 5)
    draw_image(target, source, (3, 3))
    assert target.at(3, 3) == RED
    assert target.at(4, 4) == RED
    assert target.at(2, 2) == Color(0, 0, 0, 0)


def test_pil_round_trip():
    img = RGBAImage(3, 2)
    img.set(1, 1, RED)
    again = RGBAImage.from_pil(img.to_pil())
    assert again.pix == img.pix


def test_read_bytes_exact_and_short():
    stream = io.BytesIO(b"hello")
    assert read_bytes(3, stream) == b"hel"
    with pytest.raises(EOFError):
        read_bytes(3, stream)


def test_read_uints_big_endian():
    stream = io.BytesIO(b"\x07\x01\x02\x00\x00\x01\x00")
    assert read_uint8(stream) == 0x07
    assert read_uint16(stream) == 0x0102
    assert read_uint32(stream) == 0x00000100


def test_read_color_32bpp_little_endian():
    color = read_color(io.BytesIO(b"\x30\x20\x10\x00"), PixelFormat())
    assert (color.r, color.g, color.b) == (0x10, 0x20, 0x30)


def test_read_color_16bpp_big_endian():
    pf = PixelFormat(bpp=16, depth=16, big_endian=1, red_max=31, green_max=63,
                     blue_max=31, red_shift=11, green_shift=5, blue_shift=0)
    color = read_color(io.BytesIO(b"\xf8\x00"), pf)
    assert (color.r, color.g, color.b) == (31, 0, 0)


def test_read_color_requires_true_color():
    with pytest.raises(ProtocolError):
        read_color(io.BytesIO(b"\x00"), PixelFormat(bpp=8, true_color=0))


def test_decode_raw_places_pixels_row_major():
    pf = PixelFormat()
    data = bytes([0, 0, 255, 0]) + bytes([255, 0, 0, 0])
    img = RGBAImage(4, 4)
    decode_raw(io.BytesIO(data), pf, Rectangle(x=1, y=2, width=2, height=1), img)
    assert img.at(1, 2)[:3] == (255, 0, 0)
    assert img.at(2, 2)[:3] == (0, 0, 255)


def test_make_rect_variants_agree():
    rect = Rectangle(x=3, y=4, width=5, height=6)
    bounds = make_rect_from_vnc_rect(rect)
    assert bounds == make_rect(3, 4, 5, 6)
    assert (bounds.width, bounds.height) == (5, 6)


def _canvas_with_cursor(draw_cursor=True):
    canvas = VncCanvas(4, 4, draw_cursor=draw_cursor)
    fill_rect(canvas, canvas.bounds, RED)
    cursor = RGBAImage(2, 2)
    fill_rect(cursor, cursor.bounds, BLUE)
    canvas.cursor = cursor
    canvas.cursor_mask = [[True, False], [True, True]]
    canvas.cursor_location = (1, 1)
    return canvas


def test_paint_cursor_respects_mask():
    canvas = _canvas_with_cursor().paint_cursor()
    assert canvas.at(1, 1) == BLUE
    assert canvas.at(2, 1) == BLUE
    assert canvas.at(2, 2) == BLUE
    assert canvas.at(1, 2) == RED


def test_remove_cursor_restores_pixels():
    canvas = _canvas_with_cursor()
    original = bytes(canvas.pix)
    canvas.paint_cursor()
    assert bytes(canvas.pix) != original
    canvas.remove_cursor()
    assert bytes(canvas.pix) == original


def test_cursor_not_drawn_when_disabled():
    canvas = _canvas_with_cursor(draw_cursor=False)
    original = bytes(canvas.pix)
    canvas.paint_cursor()
    assert bytes(canvas.pix) == original
    assert canvas.cursor_backup is None