import io
import struct
import zlib

import pytest

from vncrec.basic import (
    CoRREEncoding,
    CopyRectEncoding,
    CursorPosPseudoEncoding,
    DesktopNamePseudoEncoding,
    DesktopSizePseudoEncoding,
    RawEncoding,
    RREEncoding,
    XCursorPseudoEncoding,
    ZLibEncoding,
)
from vncrec.canvas import Color, RGBAImage, VncCanvas
from vncrec.types import Connection, EncodingType, ProtocolError, Rectangle


def px(r, g, b):
    # default pixel format: 32 bpp, little endian, red shift 16, green 8, blue 0
    return bytes([b, g, r, 0])


def conn_with(data=b""):
    return Connection(io.BytesIO(data))


def test_raw_reads_pixels_into_place():
    img = RGBAImage(4, 4)
    enc = RawEncoding()
    enc.set_target_image(img)
    data = px(1, 2, 3) + px(4, 5, 6) + px(7, 8, 9) + px(10, 11, 12)
    conn = conn_with(data)
    enc.read(conn, Rectangle(x=1, y=1, width=2, height=2))
    assert img.at(1, 1) == Color(1, 2, 3)
    assert img.at(2, 1) == Color(4, 5, 6)
    assert img.at(1, 2) == Color(7, 8, 9)
    assert img.at(2, 2) == Color(10, 11, 12)
    assert img.at(0, 0) == Color(0, 0, 0, 0)
    assert conn.stream.read() == b""


def test_raw_truncated_raises():
    enc = RawEncoding(RGBAImage(2, 2))
    with pytest.raises(EOFError):
        enc.read(conn_with(px(1, 2, 3)), Rectangle(width=2, height=1))


def test_copyrect_copies_region():
    img = RGBAImage(4, 4)
    img.set(0, 0, Color(1, 2, 3))
    img.set(1, 0, Color(4, 5, 6))
    enc = CopyRectEncoding()
    enc.set_target_image(img)
    enc.read(conn_with(struct.pack(">HH", 0, 0)), Rectangle(x=2, y=3, width=2, height=1))
    assert (enc.sx, enc.sy) == (0, 0)
    assert img.at(2, 3) == Color(1, 2, 3)
    assert img.at(3, 3) == Color(4, 5, 6)


def test_copyrect_overlapping_copy_uses_snapshot():
    img = RGBAImage(3, 1)
    img.set(0, 0, Color(1, 1, 1))
    img.set(1, 0, Color(2, 2, 2))
    enc = CopyRectEncoding(img)
    enc.read(conn_with(struct.pack(">HH", 0, 0)), Rectangle(x=1, y=0, width=2, height=1))
    assert img.at(1, 0) == Color(1, 1, 1)
    assert img.at(2, 0) == Color(2, 2, 2)


def test_copyrect_write_round_trip():
    enc = CopyRectEncoding()
    enc.sx, enc.sy = 5, 7
    out = io.BytesIO()
    conn = Connection(out)
    enc.write(conn, Rectangle())
    conn.flush()
    back = CopyRectEncoding(RGBAImage(10, 10))
    back.read(conn_with(out.getvalue()), Rectangle(width=1, height=1))
    assert (back.sx, back.sy) == (5, 7)
    assert out.getvalue() == struct.pack(">HH", 5, 7)


def test_corre_read_and_write_to_round_trip():
    sub = bytes([0xAA, 0xBB, 0xCC, 0xDD, 1, 2, 3, 4])
    payload = struct.pack(">I", 1) + px(9, 8, 7) + sub
    enc = CoRREEncoding()
    enc.read(conn_with(payload), Rectangle(width=8, height=8))
    assert enc.num_sub_rects == 1
    assert enc.background_color == px(9, 8, 7)
    assert enc.sub_rect_data == sub
    out = io.BytesIO()
    written = enc.write_to(out)
    assert out.getvalue() == payload
    assert written == len(payload)
    assert enc.enc_type == EncodingType.CO_RRE


def test_rre_fills_background_and_subrects():
    img = RGBAImage(6, 6)
    enc = RREEncoding()
    enc.set_target_image(img)
    payload = (
        struct.pack(">I", 1)
        + px(10, 10, 10)
        + px(200, 0, 0)
        + struct.pack(">HHHH", 1, 1, 2, 1)
    )
    enc.read(conn_with(payload), Rectangle(x=1, y=1, width=4, height=3))
    assert enc.num_sub_rects == 1
    assert img.at(1, 1) == Color(10, 10, 10)
    assert img.at(2, 2) == Color(200, 0, 0)
    assert img.at(3, 2) == Color(200, 0, 0)
    assert img.at(4, 2) == Color(10, 10, 10)
    assert img.at(0, 0) == Color(0, 0, 0, 0)
    assert img.at(5, 1) == Color(0, 0, 0, 0)


def test_rre_write_to_writes_count_only_payload():
    img = RGBAImage(2, 2)
    enc = RREEncoding(img)
    enc.read(conn_with(struct.pack(">I", 0) + px(1, 1, 1)), Rectangle(width=2, height=2))
    out = io.BytesIO()
    assert enc.write_to(out) == 4
    assert out.getvalue() == struct.pack(">I", 0)


def test_rre_truncated_subrect_raises():
    enc = RREEncoding(RGBAImage(4, 4))
    payload = struct.pack(">I", 1) + px(1, 1, 1) + px(2, 2, 2) + b"\x00\x01"
    with pytest.raises(EOFError):
        enc.read(conn_with(payload), Rectangle(width=4, height=4))


def test_desktop_name_round_trip():
    enc = DesktopNamePseudoEncoding(b"my desktop")
    out = io.BytesIO()
    enc.write(Connection(out), Rectangle())
    assert out.getvalue() == struct.pack(">I", 10) + b"my desktop"
    back = DesktopNamePseudoEncoding()
    back.read(conn_with(out.getvalue()), Rectangle())
    assert back.name == b"my desktop"


def test_desktop_name_truncated_raises():
    with pytest.raises(EOFError):
        DesktopNamePseudoEncoding().read(conn_with(struct.pack(">I", 5) + b"ab"), Rectangle())


def test_desktop_size_consumes_nothing():
    conn = conn_with(b"rest")
    enc = DesktopSizePseudoEncoding()
    enc.read(conn, Rectangle(width=800, height=600))
    assert conn.stream.read() == b"rest"
    assert enc.enc_type == EncodingType.DESKTOP_SIZE_PSEUDO


def test_cursor_pos_sets_location():
    canvas = VncCanvas(10, 10)
    enc = CursorPosPseudoEncoding()
    enc.set_target_image(canvas)
    enc.read(conn_with(), Rectangle(x=3, y=7))
    assert canvas.cursor_location == (3, 7)


def test_cursor_pos_requires_canvas():
    enc = CursorPosPseudoEncoding()
    enc.set_target_image(RGBAImage(2, 2))
    with pytest.raises(TypeError):
        enc.read(conn_with(), Rectangle(x=1, y=1))


def test_xcursor_read_write_round_trip():
    bitmap = bytes([1, 2, 3, 4])
    bitmask = bytes([5, 6, 7, 8])
    payload = bytes([10, 20, 30, 40, 50, 60]) + bitmap + bitmask
    enc = XCursorPseudoEncoding()
    conn = conn_with(payload + b"tail")
    enc.read(conn, Rectangle(width=9, height=2))
    assert enc.primary == (10, 20, 30)
    assert enc.secondary == (40, 50, 60)
    assert enc.bitmap == bitmap
    assert enc.bitmask == bitmask
    assert conn.stream.read() == b"tail"
    out = io.BytesIO()
    wconn = Connection(out)
    enc.write(wconn, Rectangle(width=9, height=2))
    wconn.flush()
    assert out.getvalue() == payload


def _zlib_chunk(comp, data):
    part = comp.compress(data) + comp.flush(zlib.Z_SYNC_FLUSH)
    return struct.pack(">I", len(part)) + part


def test_zlib_stream_continues_across_rectangles():
    img = RGBAImage(2, 2)
    enc = ZLibEncoding()
    enc.set_target_image(img)
    comp = zlib.compressobj()
    first = _zlib_chunk(comp, px(1, 2, 3) + px(4, 5, 6))
    second = _zlib_chunk(comp, px(7, 8, 9) + px(10, 11, 12))
    enc.read(conn_with(first), Rectangle(x=0, y=0, width=2, height=1))
    enc.read(conn_with(second), Rectangle(x=0, y=1, width=2, height=1))
    assert img.at(0, 0) == Color(1, 2, 3)
    assert img.at(1, 0) == Color(4, 5, 6)
    assert img.at(0, 1) == Color(7, 8, 9)
    assert img.at(1, 1) == Color(10, 11, 12)


def test_zlib_reset_starts_new_stream():
    img = RGBAImage(1, 1)
    enc = ZLibEncoding(img)
    enc.read(conn_with(_zlib_chunk(zlib.compressobj(), px(1, 1, 1))), Rectangle(width=1, height=1))
    enc.reset()
    enc.read(conn_with(_zlib_chunk(zlib.compressobj(), px(9, 9, 9))), Rectangle(width=1, height=1))
    assert img.at(0, 0) == Color(9, 9, 9)


def test_zlib_corrupt_data_raises():
    enc = ZLibEncoding(RGBAImage(1, 1))
    garbage = b"\x00\x01\x02\x03"
    with pytest.raises(ProtocolError):
        enc.read(conn_with(struct.pack(">I", len(garbage)) + garbage), Rectangle(width=1, height=1))


def test_zlib_short_inflated_data_raises():
    enc = ZLibEncoding(RGBAImage(2, 1))
    chunk = _zlib_chunk(zlib.compressobj(), px(1, 2, 3))
    with pytest.raises(EOFError):
        enc.read(conn_with(chunk), Rectangle(width=2, height=1))