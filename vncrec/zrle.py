"""ZRLE encoding: zlib-compressed 64x64 tiles with palette and run-length modes."""

from __future__ import annotations

import logging
import zlib
from typing import BinaryIO, Protocol, Sequence

from vncrec.canvas import (
    Color,
    RGBAImage,
    fill_rect,
    make_rect,
    read_bytes,
    read_color,
    read_uint32,
    read_uint8,
)
from vncrec.types import Connection, Encoding, EncodingType, PixelFormat, ProtocolError, Rectangle

log = logging.getLogger(__name__)

TILE_SIZE = 64


class _Readable(Protocol):
    def read(self, n: int) -> bytes: ...


class _Inflater:
    """A zlib stream that lasts across rectangles."""

    def __init__(self) -> None:
        self._decompressor = zlib.decompressobj()
        self._pending = bytearray()

    def feed(self, data: bytes) -> None:
        try:
            self._pending += self._decompressor.decompress(data)
        except zlib.error as exc:
            raise ProtocolError(f"corrupt zlib stream: {exc}") from exc

    def read(self, n: int) -> bytes:
        chunk = bytes(self._pending[:n])
        del self._pending[:n]
        return chunk


def is_cpixel_specific(pf: PixelFormat) -> bool:
    """True when compressed pixels are three bytes instead of a full pixel."""
    significant = (
        pf.red_max << pf.red_shift
        | pf.green_max << pf.green_shift
        | pf.blue_max << pf.blue_shift
    )
    return (
        pf.depth <= 24
        and pf.bpp == 32
        and ((significant & 0xFF000000) == 0 or (significant & 0x000000FF) == 0)
    )


def calc_bytes_per_cpixel(pf: PixelFormat) -> int:
    return 3 if is_cpixel_specific(pf) else pf.bpp // 8


def read_run_length(stream: _Readable) -> int:
    """Read a run length: one plus the sum of bytes up to the first non-255 byte."""
    run = 1
    while True:
        addition = read_uint8(stream)
        run += addition
        if addition != 255:
            return run


def read_cpixel(stream: _Readable, pf: PixelFormat) -> Color:
    """Read one compressed pixel."""
    if not pf.true_color:
        raise ProtocolError("support for non true color formats was not implemented")
    if is_cpixel_specific(pf):
        first, second, third = read_bytes(3, stream)
        if pf.big_endian != 1:
            return Color(third, second, first)
        return Color(first, second, third)
    return read_color(stream, pf)


def _pick(palette: Sequence[Color], index: int) -> Color:
    if index >= len(palette):
        raise ProtocolError(f"palette index {index} out of range for {len(palette)} colours")
    return palette[index]


class ZRLEEncoding(Encoding):
    """Zlib run-length encoding decoded onto the target image."""

    enc_type = EncodingType.ZRLE

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image
        self.data = b""
        self._inflater: _Inflater | None = None

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def reset(self) -> None:
        self._inflater = None

    def write_to(self, stream: BinaryIO) -> int:
        stream.write(self.data)
        return len(self.data)

    def read(self, conn: Connection, rect: Rectangle) -> None:
        length = read_uint32(conn)
        data = read_bytes(length, conn)
        if self._inflater is None:
            self._inflater = _Inflater()
        self._inflater.feed(data)
        self._render(rect, conn.pixel_format)

    def _render(self, rect: Rectangle, pf: PixelFormat) -> None:
        for off_y in range(0, rect.height, TILE_SIZE):
            tile_h = min(TILE_SIZE, rect.height - off_y)
            for off_x in range(0, rect.width, TILE_SIZE):
                tile_w = min(TILE_SIZE, rect.width - off_x)
                tx = rect.x + off_x
                ty = rect.y + off_y
                sub = read_uint8(self._inflater)
                if sub == 0:
                    self._raw_tile(pf, tx, ty, tile_w, tile_h)
                elif sub == 1:
                    color = read_cpixel(self._inflater, pf)
                    fill_rect(self.image, make_rect(tx, ty, tile_w, tile_h), color)
                elif 2 <= sub <= 16:
                    self._palette_tile(pf, tx, ty, tile_w, tile_h, sub)
                elif sub == 128:
                    self._plain_rle_tile(pf, tx, ty, tile_w, tile_h)
                elif sub >= 130:
                    self._palette_rle_tile(pf, tx, ty, tile_w, tile_h, sub - 128)
                else:
                    raise ProtocolError(f"unknown ZRLE subencoding: {sub}")

    def _raw_tile(self, pf: PixelFormat, tx: int, ty: int, tw: int, th: int) -> None:
        for y in range(th):
            for x in range(tw):
                self.image.set(tx + x, ty + y, read_cpixel(self._inflater, pf))

    def _palette_tile(
        self, pf: PixelFormat, tx: int, ty: int, tw: int, th: int, size: int
    ) -> None:
        palette = [read_cpixel(self._inflater, pf) for _ in range(size)]
        if size == 2:
            index_bits, bit_mask = 1, 0x80
        elif size <= 4:
            index_bits, bit_mask = 2, 0xC0
        else:
            index_bits, bit_mask = 4, 0xF0
        for y in range(th):
            available = 0
            buffer = 0
            for x in range(tw):
                if available == 0:
                    buffer = read_uint8(self._inflater)
                    available = 8
                index = (buffer & bit_mask) >> (8 - index_bits)
                buffer = (buffer << index_bits) & 0xFF
                available -= index_bits
                self.image.set(tx + x, ty + y, _pick(palette, index))

    def _plain_rle_tile(self, pf: PixelFormat, tx: int, ty: int, tw: int, th: int) -> None:
        color: Color | None = None
        run = 0
        for y in range(th):
            for x in range(tw):
                if run == 0:
                    color = read_cpixel(self._inflater, pf)
                    run = read_run_length(self._inflater)
                self.image.set(tx + x, ty + y, color)
                run -= 1

    def _palette_rle_tile(
        self, pf: PixelFormat, tx: int, ty: int, tw: int, th: int, size: int
    ) -> None:
        palette = [read_cpixel(self._inflater, pf) for _ in range(size)]
        index = 0
        run = 0
        for y in range(th):
            for x in range(tw):
                if run == 0:
                    index = read_uint8(self._inflater)
                    run = 1
                    if index & 0x80:
                        index -= 128
                        run = read_run_length(self._inflater)
                self.image.set(tx + x, ty + y, _pick(palette, index))
                run -= 1