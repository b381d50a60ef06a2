import io

import pytest
from PIL import Image

from vncrec.canvas import RGBAImage
from vncrec.ppm import encode_ppm


def test_rgba_image_bytes():
    img = RGBAImage(2, 1)
    img.set(0, 0, (1, 2, 3))
    img.set(1, 0, (4, 5, 6))
    out = io.BytesIO()
    encode_ppm(out, img)
    assert out.getvalue() == b"P6\n2 1\n255\n" + bytes([1, 2, 3, 4, 5, 6])


def test_empty_image_header_only():
    out = io.BytesIO()
    encode_ppm(out, RGBAImage(0, 0))
    assert out.getvalue() == b"P6\n0 0\n255\n"


def test_round_trip_through_pil():
    img = RGBAImage(3, 2)
    for x, y in img.bounds.points():
        img.set(x, y, (x * 50, y * 90, x + y))
    out = io.BytesIO()
    encode_ppm(out, img)
    out.seek(0)
    with Image.open(out) as decoded:
        assert decoded.size == (3, 2)
        for x, y in img.bounds.points():
            assert decoded.getpixel((x, y)) == tuple(img.at(x, y)[:3])


def test_pil_image_matches_rgba_image():
    img = RGBAImage(2, 2)
    for x, y in img.bounds.points():
        img.set(x, y, (10 * x, 20 * y, 30))
    a = io.BytesIO()
    b = io.BytesIO()
    encode_ppm(a, img)
    encode_ppm(b, img.to_pil())
    assert a.getvalue() == b.getvalue()


def test_payload_length():
    out = io.BytesIO()
    encode_ppm(out, RGBAImage(5, 4))
    header = b"P6\n5 4\n255\n"
    assert len(out.getvalue()) == len(header) + 5 * 4 * 3


def test_none_image_rejected():
    with pytest.raises(ValueError):
        encode_ppm(io.BytesIO(), None)


def test_unknown_type_rejected():
    with pytest.raises(TypeError):
        encode_ppm(io.BytesIO(), "not an image")