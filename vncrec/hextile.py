"""Hextile encoding: 16x16 tiles with background, foreground and sub-rectangles."""

from __future__ import annotations

import enum
from typing import BinaryIO

from vncrec.canvas import Color, RGBAImage, fill_rect, make_rect, read_color, read_uint8
from vncrec.types import Connection, Encoding, EncodingType, ProtocolError, Rectangle

TILE_SIZE = 16


class HextileSubencoding(enum.IntFlag):
    RAW = 1
    BACKGROUND_SPECIFIED = 2
    FOREGROUND_SPECIFIED = 4
    ANY_SUBRECTS = 8
    SUBRECTS_COLOURED = 16


class HextileEncoding(Encoding):
    """Tile-based encoding; colours carry over from one tile to the next."""

    enc_type = EncodingType.HEXTILE

    def __init__(self, image: RGBAImage | None = None) -> None:
        self.image = image
        self.data = b""

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def write_to(self, stream: BinaryIO) -> int:
        """Write the stored payload and return the number of bytes written."""
        stream.write(self.data)
        return len(self.data)

    def read(self, conn: Connection, rect: Rectangle) -> None:
        pf = conn.pixel_format
        background: Color | None = None
        foreground: Color | None = None
        bottom = rect.y + rect.height
        right = rect.x + rect.width

        for ty in range(rect.y, bottom, TILE_SIZE):
            th = min(TILE_SIZE, bottom - ty)
            for tx in range(rect.x, right, TILE_SIZE):
                tw = min(TILE_SIZE, right - tx)
                sub = read_uint8(conn)

                if sub & HextileSubencoding.RAW:
                    raw = conn.get_enc_instance(EncodingType.RAW)
                    if raw is None:
                        raise ProtocolError("hextile raw tile needs a raw encoding")
                    raw.read(conn, Rectangle(tx, ty, tw, th, EncodingType.RAW, raw))
                    continue

                if sub & HextileSubencoding.BACKGROUND_SPECIFIED:
                    background = read_color(conn, pf)
                if background is None:
                    raise ProtocolError("hextile tile has no background colour")
                fill_rect(self.image, make_rect(tx, ty, tw, th), background)

                if sub & HextileSubencoding.FOREGROUND_SPECIFIED:
                    foreground = read_color(conn, pf)
                if not sub & HextileSubencoding.ANY_SUBRECTS:
                    continue

                count = read_uint8(conn)
                coloured = bool(sub & HextileSubencoding.SUBRECTS_COLOURED)
                for _ in range(count):
                    color = read_color(conn, pf) if coloured else foreground
                    foreground = color
                    position = read_uint8(conn)
                    size = read_uint8(conn)
                    if color is None:
                        raise ProtocolError("hextile sub-rectangle has no colour")
                    sub_rect = make_rect(
                        tx + (position >> 4 & 0x0F),
                        ty + (position & 0x0F),
                        1 + (size >> 4 & 0x0F),
                        1 + (size & 0x0F),
                    )
                    fill_rect(self.image, sub_rect, color)