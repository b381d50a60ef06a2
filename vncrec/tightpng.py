"""Tight-PNG encoding: fill or PNG-compressed rectangles."""

from __future__ import annotations

import io
import struct

from PIL import Image, UnidentifiedImageError

from vncrec.canvas import (
    Color,
    RGBAImage,
    draw_image,
    fill_rect,
    make_rect_from_vnc_rect,
    read_bytes,
)
from vncrec.tight import (
    TightCC,
    TightCompression,
    read_tight_cc,
    read_tight_length,
    write_tight_cc,
    write_tight_length,
)
from vncrec.types import Connection, Encoding, EncodingType, ProtocolError, Rectangle


class TightPngEncoding(Encoding):
    """Tight variant whose rectangles are either a solid fill or a PNG image."""

    enc_type = EncodingType.TIGHT_PNG

    def __init__(self, image: RGBAImage | None = None, tight_cc: TightCC | None = None) -> None:
        self.image = image
        self.tight_cc = tight_cc

    def set_target_image(self, img: RGBAImage) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        self.tight_cc = read_tight_cc(conn)
        compression = self.tight_cc.compression
        if compression == TightCompression.PNG:
            data = read_bytes(read_tight_length(conn), conn)
            try:
                with Image.open(io.BytesIO(data)) as img:
                    picture = RGBAImage.from_pil(img)
            except (UnidentifiedImageError, OSError) as exc:
                raise ProtocolError(f"problem while decoding png: {exc}") from exc
            draw_image(self.image, picture, (rect.x, rect.y))
        elif compression == TightCompression.FILL:
            r, g, b = read_bytes(3, conn)
            fill_rect(self.image, make_rect_from_vnc_rect(rect), Color(r, g, b))
        else:
            raise ProtocolError(f"unknown compression {int(compression)}")

    def write(self, conn: Connection, rect: Rectangle) -> None:
        if self.tight_cc is None:
            raise ValueError("no compression control set for writing")
        if self.image is None:
            raise ValueError("no image to write")
        compression = self.tight_cc.compression
        if compression not in (TightCompression.PNG, TightCompression.FILL):
            raise ProtocolError(f"unknown tight compression {int(compression)}")
        write_tight_cc(conn, self.tight_cc)
        if compression == TightCompression.PNG:
            buf = io.BytesIO()
            self.image.to_pil().save(buf, format="PNG", compress_level=1)
            data = buf.getvalue()
            write_tight_length(conn, len(data))
            conn.write(data)
        else:
            r, g, b, _ = self.image.at(0, 0)
            conn.write(struct.pack(">BBB", r, g, b))