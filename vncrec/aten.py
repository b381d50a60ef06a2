"""ATEN Hermon encoding used by some server management controllers."""

from __future__ import annotations

import enum
import struct

from vncrec.basic import RawEncoding
from vncrec.canvas import RGBAImage, read_bytes, read_uint16, read_uint32, read_uint8
from vncrec.types import Connection, Encoding, EncodingType, ProtocolError, Rectangle

_SCREEN_OFF_WIDTH = 64896
_SCREEN_OFF_HEIGHT = 65056
_HEADER_LENGTH = 10
_SUBRECT_SIZE = 16 * 16


class AtenHermonType(enum.IntEnum):
    SUBRECT = 0
    RAW = 1


class AtenHermonSubrect(Encoding):
    """One 16x16 block of an ATEN Hermon rectangle, kept as raw bytes."""

    # The sub-rectangle type shares its value 0 with the raw encoding type.
    enc_type = EncodingType.RAW
    wire_supported = False

    def __init__(self) -> None:
        self.a = 0
        self.b = 0
        self.y = 0
        self.x = 0
        self.data = b""

    def read(self, conn: Connection, rect: Rectangle) -> None:
        self.a = read_uint16(conn)
        self.b = read_uint16(conn)
        self.y = read_uint8(conn)
        self.x = read_uint8(conn)
        self.data = read_bytes(_SUBRECT_SIZE * conn.pixel_format.bytes_per_pixel, conn)

    def write(self, conn: Connection, rect: Rectangle) -> None:
        if not self.supported(conn):
            return
        conn.write(struct.pack(">HHBB", self.a, self.b, self.y, self.x))
        conn.write(self.data)


class AtenHermon(Encoding):
    """ATEN Hermon rectangle: a header followed by sub-rectangles or raw pixels."""

    enc_type = EncodingType.ATEN_HERMON
    wire_supported = False

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image
        self.aten_length = 0
        self.aten_type = 0
        self.aten_subrects = 0
        self.aten_raw_length = 0
        self.encodings: list[Encoding] = []

    def read(self, conn: Connection, rect: Rectangle) -> None:
        read_bytes(4, conn)
        length = read_uint32(conn)
        self.aten_length = length

        if rect.width == _SCREEN_OFF_WIDTH and rect.height == _SCREEN_OFF_HEIGHT:
            if length not in (_HEADER_LENGTH, 0):
                raise ProtocolError("screen is off and length is invalid")
            length = 0

        if conn.width != rect.width and conn.height != rect.height:
            conn.width = rect.width
            conn.height = rect.height

        aten_type = read_uint8(conn)
        self.aten_type = aten_type
        read_bytes(1, conn)
        self.aten_subrects = read_uint32(conn)
        raw_length = read_uint32(conn)
        self.aten_raw_length = raw_length

        if length != raw_length:
            raise ProtocolError(f"aten_length != raw_length, {length} != {raw_length}")

        length -= _HEADER_LENGTH
        bytes_per_pixel = conn.pixel_format.bytes_per_pixel
        while length > 0:
            if aten_type == AtenHermonType.SUBRECT:
                sub = AtenHermonSubrect()
                sub.read(conn, rect)
                self.encodings.append(sub)
                length -= 6 + _SUBRECT_SIZE * bytes_per_pixel
            elif aten_type == AtenHermonType.RAW:
                if self.image is None:
                    raise ProtocolError("raw aten hermon data needs a target image")
                raw = RawEncoding(self.image)
                raw.read(conn, rect)
                self.encodings.append(raw)
                length -= rect.area() * bytes_per_pixel
            else:
                raise ProtocolError(f"unknown aten hermon type {aten_type}")

        if length < 0:
            raise ProtocolError("aten_len dropped below zero")

    def write(self, conn: Connection, rect: Rectangle) -> None:
        if self.supported(conn):
            conn.write(bytes(4))
            conn.write(struct.pack(">IB", self.aten_length, self.aten_type))
            conn.write(bytes(1))
            conn.write(struct.pack(">II", self.aten_subrects, self.aten_raw_length))
        for enc in self.encodings:
            enc.write(conn, rect)