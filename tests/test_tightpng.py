import io

import pytest

from vncrec.canvas import Color, RGBAImage
from vncrec.tight import TightCC, TightCompression, TightFilter
from vncrec.tightpng import TightPngEncoding
from vncrec.types import Connection, ProtocolError, Rectangle


def _written(enc, rect):
    stream = io.BytesIO()
    conn = Connection(stream)
    enc.write(conn, rect)
    conn.flush()
    return stream.getvalue()


def test_fill_write_wire_bytes():
    img = RGBAImage(1, 1)
    img.set(0, 0, (10, 20, 30))
    enc = TightPngEncoding(img, TightCC(TightCompression.FILL, TightFilter.COPY))
    assert _written(enc, Rectangle(0, 0, 1, 1)) == b"\x80\x0a\x14\x1e"


def test_fill_round_trip():
    src = RGBAImage(1, 1)
    src.set(0, 0, (7, 8, 9))
    data = _written(
        TightPngEncoding(src, TightCC(TightCompression.FILL, TightFilter.COPY)),
        Rectangle(0, 0, 1, 1),
    )
    target = RGBAImage(4, 4)
    dec = TightPngEncoding(target)
    dec.read(Connection(io.BytesIO(data)), Rectangle(1, 1, 2, 2))
    assert dec.tight_cc.compression == TightCompression.FILL
    for x, y in [(1, 1), (2, 1), (1, 2), (2, 2)]:
        assert target.at(x, y) == Color(7, 8, 9)
    assert target.at(0, 0) == Color(0, 0, 0, 0)
    assert target.at(3, 3) == Color(0, 0, 0, 0)


def test_png_round_trip():
    src = RGBAImage(3, 2)
    colors = {}
    for x, y in src.bounds.points():
        c = (x * 40, y * 60, 100 + x + y)
        src.set(x, y, c)
        colors[(x, y)] = Color(*c)
    data = _written(
        TightPngEncoding(src, TightCC(TightCompression.PNG, TightFilter.COPY)),
        Rectangle(0, 0, 3, 2),
    )
    assert data[0] == 0xA0
    target = RGBAImage(5, 5)
    dec = TightPngEncoding(target)
    dec.read(Connection(io.BytesIO(data)), Rectangle(1, 1, 3, 2))
    for (x, y), c in colors.items():
        assert target.at(x + 1, y + 1) == c
    assert target.at(0, 0) == Color(0, 0, 0, 0)


def test_read_basic_compression_rejected():
    dec = TightPngEncoding(RGBAImage(2, 2))
    with pytest.raises(ProtocolError):
        dec.read(Connection(io.BytesIO(b"\x00")), Rectangle(0, 0, 1, 1))


def test_read_unknown_compression_rejected():
    dec = TightPngEncoding(RGBAImage(2, 2))
    with pytest.raises(ProtocolError):
        dec.read(Connection(io.BytesIO(b"\x50")), Rectangle(0, 0, 1, 1))


def test_write_jpeg_rejected():
    enc = TightPngEncoding(RGBAImage(1, 1), TightCC(TightCompression.JPEG, TightFilter.COPY))
    with pytest.raises(ProtocolError):
        _written(enc, Rectangle(0, 0, 1, 1))


def test_read_corrupt_png_rejected():
    payload = b"\xa0\x04abcd"
    dec = TightPngEncoding(RGBAImage(2, 2))
    with pytest.raises(ProtocolError):
        dec.read(Connection(io.BytesIO(payload)), Rectangle(0, 0, 1, 1))


def test_read_truncated_fill_raises_eof():
    dec = TightPngEncoding(RGBAImage(2, 2))
    with pytest.raises(EOFError):
        dec.read(Connection(io.BytesIO(b"\x80\x01")), Rectangle(0, 0, 1, 1))