"""Tight encoding: fill, JPEG and zlib-compressed copy, palette and gradient rectangles."""

from __future__ import annotations

import enum
import io
import logging
import zlib
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from vncrec.canvas import (
    Color,
    RGBAImage,
    draw_image,
    fill_rect,
    make_rect_from_vnc_rect,
    read_bytes,
    read_uint8,
)
from vncrec.types import Connection, Encoding, EncodingType, PixelFormat, ProtocolError, Rectangle

log = logging.getLogger(__name__)

TIGHT_MIN_TO_COMPRESS = 12
_STREAM_COUNT = 4
_STREAM_ID_MASK = 0x30
_FILTER_ID_MASK = 0x40


class TightCompression(enum.IntEnum):
    BASIC = 0
    FILL = 8
    JPEG = 9
    PNG = 10


class TightFilter(enum.IntEnum):
    COPY = 0
    PALETTE = 1
    GRADIENT = 2


@dataclass
class TightCC:
    """Decoded compression-control byte."""

    compression: TightCompression
    filter: TightFilter


class _ZlibStream:
    """One of the four persistent zlib streams of a tight session."""

    def __init__(self) -> None:
        self._decompressor = zlib.decompressobj()
        self._pending = bytearray()

    def feed(self, data: bytes) -> None:
        try:
            self._pending += self._decompressor.decompress(data)
        except zlib.error as exc:
            raise ProtocolError(f"corrupt zlib stream: {exc}") from exc

    def take(self, n: int) -> bytes:
        if len(self._pending) < n:
            raise ProtocolError(
                "inflating tight data didn't produce expected number of bytes"
            )
        chunk = bytes(self._pending[:n])
        del self._pending[:n]
        return chunk


def calc_tight_bytes_per_pixel(pf: PixelFormat) -> int:
    """Bytes per pixel on the wire: 3 for 24-bit depth in 32-bit pixels."""
    if pf.depth == 24 and pf.bpp == 32:
        return 3
    return pf.bpp // 8


def _read_tight_color(conn: Connection, pf: PixelFormat) -> Color:
    if not pf.true_color:
        raise ProtocolError("support for non true color formats was not implemented")
    compact = (
        pf.depth == 24
        and pf.bpp == 32
        and pf.blue_max <= 255
        and pf.red_max <= 255
        and pf.green_max <= 255
    )
    if compact:
        r, g, b = read_bytes(3, conn)
        return Color(r, g, b)
    pixel = 0
    if pf.bpp in (8, 16, 32):
        pixel = int.from_bytes(read_bytes(pf.bpp // 8, conn), pf.byte_order)
    return Color(
        (pixel >> pf.red_shift) & pf.red_max & 0xFF,
        (pixel >> pf.green_shift) & pf.green_max & 0xFF,
        (pixel >> pf.blue_shift) & pf.blue_max & 0xFF,
    )


def read_tight_length(conn: Connection) -> int:
    """Read a compact length of one to three bytes."""
    b = read_uint8(conn)
    length = b & 0x7F
    if not b & 0x80:
        return length
    b = read_uint8(conn)
    length |= (b & 0x7F) << 7
    if not b & 0x80:
        return length
    b = read_uint8(conn)
    return length | (b & 0xFF) << 14


def write_tight_length(conn: Connection, length: int) -> None:
    """Write a compact length of one to three bytes."""
    buf = bytearray([length & 0x7F])
    if length > 0x7F:
        buf[0] |= 0x80
        buf.append((length >> 7) & 0x7F)
        if length > 0x3FFF:
            buf[1] |= 0x80
            buf.append((length >> 14) & 0xFF)
    conn.write(bytes(buf))


def read_tight_cc(conn: Connection) -> TightCC:
    """Read a compression-control byte of the kinds the tight-PNG variant uses."""
    value = read_uint8(conn) >> 4
    if value == TightCompression.BASIC:
        return TightCC(TightCompression.BASIC, TightFilter.COPY)
    if value == TightCompression.FILL:
        return TightCC(TightCompression.FILL, TightFilter.COPY)
    if value == TightCompression.PNG:
        return TightCC(TightCompression.PNG, TightFilter.COPY)
    raise ProtocolError(f"unknown tight compression {value}")


def write_tight_cc(conn: Connection, tcc: TightCC) -> None:
    ccb = {
        TightCompression.FILL: 0x80,
        TightCompression.JPEG: 0x90,
        TightCompression.PNG: 0xA0,
    }.get(tcc.compression, 0)
    conn.write(bytes([ccb]))


class TightEncoding(Encoding):
    """Tight rectangles, decoded onto the target image."""

    enc_type = EncodingType.TIGHT

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image
        self._streams: list[_ZlibStream | None] = [None] * _STREAM_COUNT

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def reset(self) -> None:
        """Tight streams persist for the whole session; nothing to drop here."""
        return None

    def _reset_streams(self, compctl: int) -> None:
        for i in range(_STREAM_COUNT):
            if compctl >> i & 1:
                self._streams[i] = None

    def read(self, conn: Connection, rect: Rectangle) -> None:
        pf = conn.pixel_format
        bytes_pixel = calc_tight_bytes_per_pixel(pf)
        if self.image is None:
            self.image = RGBAImage(conn.width, conn.height)

        compctl = read_uint8(conn)
        self._reset_streams(compctl)
        comp_type = compctl >> 4 & 0x0F

        if comp_type == TightCompression.FILL:
            color = _read_tight_color(conn, pf)
            fill_rect(self.image, make_rect_from_vnc_rect(rect), color)
            if bytes_pixel != 3:
                raise ProtocolError("non tight bytesPerPixel format, should be 3 bytes")
            return

        if comp_type == TightCompression.JPEG:
            if pf.bpp == 8:
                raise ProtocolError("Tight encoding: JPEG is not supported in 8 bpp mode")
            data = read_bytes(read_tight_length(conn), conn)
            try:
                with Image.open(io.BytesIO(data)) as img:
                    picture = RGBAImage.from_pil(img)
            except (UnidentifiedImageError, OSError) as exc:
                raise ProtocolError(f"problem while decoding jpeg: {exc}") from exc
            draw_image(self.image, picture, (rect.x, rect.y))
            return

        if comp_type > TightCompression.JPEG:
            log.error("Compression control byte is incorrect!")
        self._handle_filters(compctl, pf, rect, conn)

    def _handle_filters(
        self, compctl: int, pf: PixelFormat, rect: Rectangle, conn: Connection
    ) -> None:
        stream_id = (compctl & _STREAM_ID_MASK) >> 4
        filter_id = read_uint8(conn) if compctl & _FILTER_ID_MASK else TightFilter.COPY
        bytes_pixel = calc_tight_bytes_per_pixel(pf)
        full_length = bytes_pixel * rect.width * rect.height

        if filter_id == TightFilter.PALETTE:
            palette = self._read_palette(conn, bytes_pixel)
            if len(palette) == 2:
                data_length = rect.height * ((rect.width + 7) // 8)
            else:
                data_length = rect.width * rect.height
            data = self.read_tight_data(data_length, conn, stream_id)
            self._draw_palette(rect, palette, data)
        elif filter_id == TightFilter.GRADIENT:
            data = self.read_tight_data(full_length, conn, stream_id)
            self._decode_gradient(rect, data)
        elif filter_id == TightFilter.COPY:
            data = self.read_tight_data(full_length, conn, stream_id)
            self._draw_bytes(rect, data)
        else:
            raise ProtocolError(f"bad tight filter id: {filter_id}")

    @staticmethod
    def _read_palette(conn: Connection, bytes_pixel: int) -> list[Color]:
        size = read_uint8(conn) + 1
        data = read_bytes(size * bytes_pixel, conn)
        if len(data) % 3:
            raise ProtocolError("tight palette is not made of 3-byte colours")
        return [Color(*data[i:i + 3]) for i in range(0, len(data), 3)]

    def read_tight_data(self, data_size: int, conn: Connection, decoder_id: int) -> bytes:
        """Read ``data_size`` bytes, inflating them through stream ``decoder_id``."""
        if data_size < TIGHT_MIN_TO_COMPRESS:
            return read_bytes(data_size, conn)
        zipped = read_bytes(read_tight_length(conn), conn)
        stream = self._streams[decoder_id]
        if stream is None:
            stream = self._streams[decoder_id] = _ZlibStream()
        stream.feed(zipped)
        return stream.take(data_size)

    def _draw_palette(self, rect: Rectangle, palette: list[Color], data: bytes) -> None:
        if len(palette) == 2:
            stride = (rect.width + 7) // 8
            for y in range(rect.height):
                row = data[y * stride:(y + 1) * stride]
                for x in range(rect.width):
                    index = row[x // 8] >> (7 - x % 8) & 1
                    self.image.set(rect.x + x, rect.y + y, palette[index])
            return
        indices = iter(data)
        for y in range(rect.height):
            for x in range(rect.width):
                self.image.set(rect.x + x, rect.y + y, palette[next(indices) % len(palette)])

    def _decode_gradient(self, rect: Rectangle, data: bytes) -> None:
        row_len = rect.width * 3 + 3
        prev_row = bytearray(row_len)
        this_row = bytearray(row_len)
        pos = 0
        for y in range(rect.height):
            for j in range(3, row_len, 3):
                for c in range(3):
                    d = prev_row[j + c] + this_row[j + c - 3] - prev_row[j + c - 3]
                    d = min(max(d, 0), 255)
                    this_row[j + c] = (data[pos + c] + d) & 0xFF
                pos += 3
            for x in range(rect.width):
                offset = 3 * (x + 1)
                self.image.set(rect.x + x, rect.y + y, Color(*this_row[offset:offset + 3]))
            prev_row, this_row = this_row, prev_row

    def _draw_bytes(self, rect: Rectangle, data: bytes) -> None:
        pixels = iter(range(0, len(data), 3))
        for y in range(rect.y, rect.y + rect.height):
            for x in range(rect.x, rect.x + rect.width):
                offset = next(pixels)
                self.image.set(x, y, Color(*data[offset:offset + 3]))