"""Binary PPM (P6) output of framebuffer images, as fed to video encoders."""

from __future__ import annotations

from typing import BinaryIO

from PIL import Image

from vncrec.canvas import RGBAImage

_MAX_VALUE = 255


def _header(width: int, height: int) -> bytes:
    return f"P6\n{width} {height}\n{_MAX_VALUE}\n".encode("ascii")


def _rgb_from_rgba(pix: bytes | bytearray) -> bytes:
    count = len(pix) // 4
    out = bytearray(3 * count)
    out[0::3] = pix[0::4]
    out[1::3] = pix[1::4]
    out[2::3] = pix[2::4]
    return bytes(out)


def encode_ppm(stream: BinaryIO, img: RGBAImage | Image.Image | None) -> None:
    """Write ``img`` to ``stream`` as one binary PPM frame."""
    if img is None:
        raise ValueError("nil image")
    if isinstance(img, RGBAImage):
        stream.write(_header(img.width, img.height))
        stream.write(_rgb_from_rgba(img.pix))
    elif isinstance(img, Image.Image):
        rgb = img.convert("RGB")
        stream.write(_header(rgb.width, rgb.height))
        stream.write(rgb.tobytes())
    else:
        raise TypeError(f"cannot encode {type(img).__name__} as PPM")