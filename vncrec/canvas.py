"""Framebuffer images, the VNC canvas with cursor overlay, and wire readers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Protocol, Sequence

from PIL import Image

from vncrec.types import PixelFormat, ProtocolError, Rectangle

BLOCK_WIDTH = 16
BLOCK_HEIGHT = 16


class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255


TRANSPARENT = Color(0, 0, 0, 0)


class _Readable(Protocol):
    def read(self, n: int) -> bytes: ...


@dataclass(frozen=True)
class Bounds:
    """Half-open pixel rectangle [min_x, max_x) x [min_y, max_y)."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    @property
    def empty(self) -> bool:
        return self.min_x >= self.max_x or self.min_y >= self.max_y

    def intersect(self, other: Bounds) -> Bounds:
        return Bounds(
            max(self.min_x, other.min_x),
            max(self.min_y, other.min_y),
            min(self.max_x, other.max_x),
            min(self.max_y, other.max_y),
        )

    def points(self) -> Iterator[tuple[int, int]]:
        for y in range(self.min_y, self.max_y):
            for x in range(self.min_x, self.max_x):
                yield x, y


def _as_color(color: Sequence[int]) -> Color:
    if len(color) == 3:
        return Color(*color)
    return Color(*color[:4])


class RGBAImage:
    """An RGBA image with its origin at (0, 0); writes outside it are dropped."""

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError("image dimensions must not be negative")
        self.width = width
        self.height = height
        self.pix = bytearray(4 * width * height)

    @property
    def bounds(self) -> Bounds:
        return Bounds(0, 0, self.width, self.height)

    def _inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def set(self, x: int, y: int, color: Sequence[int]) -> None:
        if self._inside(x, y):
            offset = 4 * (y * self.width + x)
            self.pix[offset:offset + 4] = bytes(_as_color(color))

    def at(self, x: int, y: int) -> Color:
        if not self._inside(x, y):
            return TRANSPARENT
        offset = 4 * (y * self.width + x)
        return Color(*self.pix[offset:offset + 4])

    def fill(self, bounds: Bounds, color: Sequence[int]) -> None:
        """Paint the part of ``bounds`` that lies inside the image."""
        area = bounds.intersect(self.bounds)
        if area.empty:
            return
        row = bytes(_as_color(color)) * area.width
        for y in range(area.min_y, area.max_y):
            start = 4 * (y * self.width + area.min_x)
            self.pix[start:start + len(row)] = row

    def to_pil(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), bytes(self.pix))

    @classmethod
    def from_pil(cls, img: Image.Image) -> RGBAImage:
        rgba = img.convert("RGBA")
        result = cls(rgba.width, rgba.height)
        result.pix[:] = rgba.tobytes()
        return result


class VncCanvas(RGBAImage):
    """The remote framebuffer, with optional software cursor and dirty blocks."""

    def __init__(self, width: int = 0, height: int = 0, *, draw_cursor: bool = False) -> None:
        super().__init__(width, height)
        self.draw_cursor = draw_cursor
        self.cursor: RGBAImage | None = None
        self.cursor_mask: list[list[bool]] = []
        self.cursor_backup: RGBAImage | None = None
        self.cursor_offset: tuple[int, int] = (0, 0)
        self.cursor_location: tuple[int, int] | None = None
        self.changed: set[tuple[int, int]] = set()

    def set_changed(self, rect: Rectangle) -> None:
        """Mark every 16x16 block touched by ``rect`` as changed."""
        right = rect.x + rect.width
        bottom = rect.y + rect.height
        bx = rect.x // BLOCK_WIDTH
        while bx * BLOCK_WIDTH < right:
            by = rect.y // BLOCK_HEIGHT
            while by * BLOCK_HEIGHT < bottom:
                self.changed.add((bx, by))
                by += 1
            bx += 1

    def reset(self, rect: Rectangle | None = None) -> None:
        self.changed = set()

    def _cursor_active(self) -> bool:
        return self.cursor is not None and self.cursor_location is not None and self.draw_cursor

    def _cursor_pixels(self) -> Iterator[tuple[int, int, int, int]]:
        """Yield cursor coordinates under the mask with their canvas position."""
        assert self.cursor is not None and self.cursor_location is not None
        loc_x, loc_y = self.cursor_location
        off_x, off_y = self.cursor_offset
        for x, y in self.cursor.bounds.points():
            if self.cursor_mask[x][y]:
                yield x, y, x + loc_x - off_x, y + loc_y - off_y

    def remove_cursor(self) -> VncCanvas:
        """Restore the pixels that the cursor covers."""
        if not self._cursor_active() or self.cursor_backup is None:
            return self
        for x, y, cx, cy in self._cursor_pixels():
            self.set(cx, cy, self.cursor_backup.at(x, y))
        return self

    def paint_cursor(self) -> VncCanvas:
        """Draw the cursor, keeping a backup of the pixels it covers."""
        if not self._cursor_active():
            return self
        assert self.cursor is not None
        if self.cursor_backup is None:
            self.cursor_backup = RGBAImage(self.cursor.width, self.cursor.height)
        for x, y, cx, cy in self._cursor_pixels():
            self.cursor_backup.set(x, y, self.at(cx, cy))
            self.set(cx, cy, self.cursor.at(x, y))
        return self


def draw_image(target: RGBAImage, source: RGBAImage, pos: tuple[int, int]) -> None:
    """Copy ``source`` onto ``target`` with its origin at ``pos``."""
    pos_x, pos_y = pos
    for x, y in source.bounds.points():
        target.set(x + pos_x, y + pos_y, source.at(x, y))


def fill_rect(img: RGBAImage, bounds: Bounds, color: Sequence[int]) -> None:
    if isinstance(img, RGBAImage):
        img.fill(bounds, color)
        return
    for x, y in bounds.points():
        img.set(x, y, color)


def read_bytes(count: int, stream: _Readable) -> bytes:
    """Read exactly ``count`` bytes from ``stream``."""
    chunks = []
    remaining = count
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise EOFError(f"unable to read bytes: read {count - remaining} of {count}")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_color(stream: _Readable, pf: PixelFormat) -> Color:
    """Read one pixel in pixel format ``pf`` and return its colour."""
    if not pf.true_color:
        raise ProtocolError("support for non true color formats was not implemented")
    pixel = 0
    if pf.bpp in (8, 16, 32):
        pixel = int.from_bytes(read_bytes(pf.bpp // 8, stream), pf.byte_order)
    return Color(
        (pixel >> pf.red_shift) & pf.red_max & 0xFF,
        (pixel >> pf.green_shift) & pf.green_max & 0xFF,
        (pixel >> pf.blue_shift) & pf.blue_max & 0xFF,
    )


def decode_raw(stream: _Readable, pf: PixelFormat, rect: Rectangle, target: RGBAImage) -> None:
    """Read ``rect`` as raw pixels, row by row, onto ``target``."""
    for y in range(rect.height):
        for x in range(rect.width):
            target.set(rect.x + x, rect.y + y, read_color(stream, pf))


def read_uint8(stream: _Readable) -> int:
    return read_bytes(1, stream)[0]


def read_uint16(stream: _Readable) -> int:
    return int.from_bytes(read_bytes(2, stream), "big")


def read_uint32(stream: _Readable) -> int:
    return int.from_bytes(read_bytes(4, stream), "big")


def make_rect(x: int, y: int, width: int, height: int) -> Bounds:
    return Bounds(x, y, x + width, y + height)


def make_rect_from_vnc_rect(rect: Rectangle) -> Bounds:
    return make_rect(rect.x, rect.y, rect.width, rect.height)