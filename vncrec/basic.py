"""Simple rectangle encodings: raw, copy-rect, RRE variants, zlib and pseudo-encodings."""

from __future__ import annotations

import struct
import zlib
from typing import BinaryIO

from vncrec.canvas import (
    RGBAImage,
    VncCanvas,
    decode_raw,
    fill_rect,
    make_rect,
    make_rect_from_vnc_rect,
    read_bytes,
    read_color,
    read_uint16,
    read_uint32,
    read_uint8,
)
from vncrec.types import Connection, Encoding, EncodingType, ProtocolError, Rectangle


class _InflateStream:
    """A zlib stream that keeps its state while compressed data is fed in pieces."""

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


class RawEncoding(Encoding):
    """Uncompressed pixels, row by row."""

    enc_type = EncodingType.RAW

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        decode_raw(conn, conn.pixel_format, rect, self.image)


class CopyRectEncoding(Encoding):
    """Copy of a region that is already on the framebuffer."""

    enc_type = EncodingType.COPY_RECT

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.sx = 0
        self.sy = 0
        self.image = image

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        self.sx = read_uint16(conn)
        self.sy = read_uint16(conn)
        copy = RGBAImage(rect.width, rect.height)
        for x, y in copy.bounds.points():
            copy.set(x, y, self.image.at(x + self.sx, y + self.sy))
        for x, y in copy.bounds.points():
            self.image.set(rect.x + x, rect.y + y, copy.at(x, y))

    def write(self, conn: Connection, rect: Rectangle) -> None:
        conn.write(struct.pack(">HH", self.sx, self.sy))


class CoRREEncoding(Encoding):
    """Compact RRE; the payload is kept as raw bytes."""

    enc_type = EncodingType.CO_RRE

    def __init__(self) -> None:
        self.num_sub_rects = 0
        self.background_color = b""
        self.sub_rect_data = b""

    def read(self, conn: Connection, rect: Rectangle) -> None:
        bytes_per_pixel = conn.pixel_format.bpp // 8
        count = read_uint32(conn)
        self.num_sub_rects = count
        self.background_color = read_bytes(bytes_per_pixel, conn)
        self.sub_rect_data = read_bytes(count * (bytes_per_pixel + 4), conn)

    def write_to(self, stream: BinaryIO) -> int:
        """Write the stored payload and return the number of bytes written."""
        stream.write(struct.pack(">I", self.num_sub_rects))
        stream.write(self.background_color)
        stream.write(self.sub_rect_data)
        return len(self.background_color) + len(self.sub_rect_data) + 4


class RREEncoding(Encoding):
    """Rise-and-run-length encoding: a background plus solid sub-rectangles."""

    enc_type = EncodingType.RRE

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.num_sub_rects = 0
        self.background_color = b""
        self.sub_rect_data = b""
        self.image = image

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        pf = conn.pixel_format
        count = read_uint32(conn)
        self.num_sub_rects = count
        background = read_color(conn, pf)
        fill_rect(self.image, make_rect_from_vnc_rect(rect), background)
        for _ in range(count):
            color = read_color(conn, pf)
            x = read_uint16(conn)
            y = read_uint16(conn)
            width = read_uint16(conn)
            height = read_uint16(conn)
            sub = make_rect((rect.x + x) & 0xFFFF, (rect.y + y) & 0xFFFF, width, height)
            fill_rect(self.image, sub, color)

    def write_to(self, stream: BinaryIO) -> int:
        """Write the stored payload and return the number of bytes written."""
        stream.write(struct.pack(">I", self.num_sub_rects))
        stream.write(self.background_color)
        stream.write(self.sub_rect_data)
        return len(self.background_color) + len(self.sub_rect_data) + 4


class DesktopNamePseudoEncoding(Encoding):
    """New desktop name sent by the server."""

    enc_type = EncodingType.DESKTOP_NAME_PSEUDO

    def __init__(self, name: bytes = b"") -> None:
        self.name = name

    def read(self, conn: Connection, rect: Rectangle) -> None:
        length = read_uint32(conn)
        self.name = read_bytes(length, conn)

    def write(self, conn: Connection, rect: Rectangle) -> None:
        conn.write(struct.pack(">I", len(self.name)))
        conn.write(self.name)
        conn.flush()


class DesktopSizePseudoEncoding(Encoding):
    """Desktop size change; the rectangle itself carries the new size."""

    enc_type = EncodingType.DESKTOP_SIZE_PSEUDO


class CursorPosPseudoEncoding(Encoding):
    """Pointer position update; moves the cursor drawn on the canvas."""

    enc_type = EncodingType.POINTER_POS_PSEUDO

    def __init__(self, image: VncCanvas | None = None) -> None:
        self.image = image

    def set_target_image(self, img: VncCanvas) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        if not isinstance(self.image, VncCanvas):
            raise TypeError("cursor position updates need a VncCanvas target")
        self.image.cursor_location = (rect.x, rect.y)


class XCursorPseudoEncoding(Encoding):
    """Two-colour X cursor with bitmap and mask."""

    enc_type = EncodingType.X_CURSOR_PSEUDO

    def __init__(self) -> None:
        self.primary = (0, 0, 0)
        self.secondary = (0, 0, 0)
        self.bitmap = b""
        self.bitmask = b""

    def read(self, conn: Connection, rect: Rectangle) -> None:
        self.primary = tuple(read_uint8(conn) for _ in range(3))
        self.secondary = tuple(read_uint8(conn) for _ in range(3))
        size = (rect.width + 7) // 8 * rect.height
        self.bitmap = read_bytes(size, conn)
        self.bitmask = read_bytes(size, conn)

    def write(self, conn: Connection, rect: Rectangle) -> None:
        conn.write(bytes(self.primary) + bytes(self.secondary))
        conn.write(self.bitmap)
        conn.write(self.bitmask)


class ZLibEncoding(Encoding):
    """Raw pixels inside one zlib stream that lasts across rectangles."""

    enc_type = EncodingType.ZLIB

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image
        self._inflater: _InflateStream | None = None

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def reset(self) -> None:
        self._inflater = None

    def read(self, conn: Connection, rect: Rectangle) -> None:
        zipped_len = read_uint32(conn)
        data = read_bytes(zipped_len, conn)
        if self._inflater is None:
            self._inflater = _InflateStream()
        self._inflater.feed(data)
        decode_raw(self._inflater, conn.pixel_format, rect, self.image)