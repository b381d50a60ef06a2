"""Rich cursor pseudo-encoding: a cursor image with a transparency bitmask."""

from __future__ import annotations

from vncrec.canvas import Color, RGBAImage, VncCanvas, read_bytes, read_color
from vncrec.types import Connection, Encoding, EncodingType, Rectangle


class CursorPseudoEncoding(Encoding):
    """Cursor shape sent by the server; installs the cursor on the canvas."""

    enc_type = EncodingType.CURSOR_PSEUDO

    def __init__(self, image: VncCanvas | None = None) -> None:
        self.image = image
        self.colors: list[Color] = []
        self.bitmask = b""

    def set_target_image(self, img: VncCanvas) -> None:
        self.image = img

    def read(self, conn: Connection, rect: Rectangle) -> None:
        pf = conn.pixel_format
        colors = [read_color(conn, pf) for _ in range(rect.width * rect.height)]
        scan_line = (rect.width + 7) // 8
        bitmask = read_bytes(scan_line * rect.height, conn)
        self.colors = colors
        self.bitmask = bitmask

        if not isinstance(self.image, VncCanvas):
            raise TypeError("cursor updates need a VncCanvas target")

        cursor_img = RGBAImage(rect.width, rect.height)
        cursor_mask = [[False] * rect.height for _ in range(rect.width)]
        for x, y in cursor_img.bounds.points():
            if bitmask[y * scan_line + x // 8] & (0x80 >> (x % 8)):
                cursor_img.set(x, y, colors[y * rect.width + x])
                cursor_mask[x][y] = True

        canvas = self.image
        canvas.cursor_offset = (rect.x, rect.y)
        canvas.cursor = cursor_img
        canvas.cursor_backup = RGBAImage(rect.width, rect.height)
        canvas.cursor_mask = cursor_mask