"""Core protocol types: buttons, encoding identifiers, pixel formats and connections."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, ClassVar, Iterable


class ProtocolError(ValueError):
    """Raised when data received from a VNC peer cannot be decoded."""


class Button(enum.IntFlag):
    """Mask of pointer presses and releases."""

    NONE = 0
    LEFT = 1 << 0
    MIDDLE = 1 << 1
    RIGHT = 1 << 2
    FOUR = 1 << 3
    FIVE = 1 << 4
    SIX = 1 << 5
    SEVEN = 1 << 6
    EIGHT = 1 << 7


def mask(button: Button) -> int:
    """Return the button mask as an unsigned byte."""
    return int(button) & 0xFF


class EncodingType(enum.IntEnum):
    """Known VNC encoding types."""

    RAW = 0
    COPY_RECT = 1
    RRE = 2
    CO_RRE = 4
    HEXTILE = 5
    ZLIB = 6
    TIGHT = 7
    ZLIB_HEX = 8
    ULTRA1 = 9
    ULTRA2 = 10
    JPEG = 21
    JRLE = 22
    TRLE = 15
    ZRLE = 16
    ATEN_AST2100 = 0x57
    ATEN_AST_JPEG = 0x58
    ATEN_HERMON = 0x59
    ATEN_YARKON = 0x60
    ATEN_PILOT3 = 0x61
    JPEG_QUALITY_LEVEL_PSEUDO10 = -23
    JPEG_QUALITY_LEVEL_PSEUDO9 = -24
    JPEG_QUALITY_LEVEL_PSEUDO8 = -25
    JPEG_QUALITY_LEVEL_PSEUDO7 = -26
    JPEG_QUALITY_LEVEL_PSEUDO6 = -27
    JPEG_QUALITY_LEVEL_PSEUDO5 = -28
    JPEG_QUALITY_LEVEL_PSEUDO4 = -29
    JPEG_QUALITY_LEVEL_PSEUDO3 = -30
    JPEG_QUALITY_LEVEL_PSEUDO2 = -31
    JPEG_QUALITY_LEVEL_PSEUDO1 = -32
    POINTER_POS_PSEUDO = -232
    CURSOR_PSEUDO = -239
    X_CURSOR_PSEUDO = -240
    DESKTOP_SIZE_PSEUDO = -223
    LAST_RECT_PSEUDO = -224
    COMPRESSION_LEVEL10 = -247
    COMPRESSION_LEVEL9 = -248
    COMPRESSION_LEVEL8 = -249
    COMPRESSION_LEVEL7 = -250
    COMPRESSION_LEVEL6 = -251
    COMPRESSION_LEVEL5 = -252
    COMPRESSION_LEVEL4 = -253
    COMPRESSION_LEVEL3 = -254
    COMPRESSION_LEVEL2 = -255
    COMPRESSION_LEVEL1 = -256
    QEMU_POINTER_MOTION_CHANGE_PSEUDO = -257
    QEMU_EXTENDED_KEY_EVENT_PSEUDO = -258
    TIGHT_PNG = -260
    DESKTOP_NAME_PSEUDO = -307
    EXTENDED_DESKTOP_SIZE_PSEUDO = -308
    XVP_PSEUDO = -309
    CLIENT_REDIRECT = -311
    FENCE_PSEUDO = -312
    CONTINUOUS_UPDATES_PSEUDO = -313
    EXTENDED_CLIPBOARD_PSEUDO = -1063131698  # 0xC0A1E5CE


@dataclass
class PixelFormat:
    """Representation of pixel data negotiated with the server."""

    bpp: int = 32
    depth: int = 24
    big_endian: int = 0
    true_color: int = 1
    red_max: int = 255
    green_max: int = 255
    blue_max: int = 255
    red_shift: int = 16
    green_shift: int = 8
    blue_shift: int = 0

    @property
    def byte_order(self) -> str:
        """Byte order of multi-byte pixel values, as accepted by int.from_bytes."""
        return "big" if self.big_endian else "little"

    @property
    def bytes_per_pixel(self) -> int:
        return self.bpp // 8


@dataclass
class Rectangle:
    """A framebuffer rectangle as announced in an update message."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    enc_type: EncodingType = EncodingType.RAW
    enc: Encoding | None = None

    def area(self) -> int:
        return self.width * self.height


class Encoding:
    """Base class of rectangle encodings.

    The defaults describe an encoding that carries no payload: reading and
    writing consume and produce nothing.
    """

    enc_type: ClassVar[EncodingType] = EncodingType.RAW
    # Whether this encoding can be written back onto a connection.
    wire_supported: ClassVar[bool] = True

    def read(self, conn: Connection, rect: Rectangle) -> None:
        """Decode the payload of ``rect``; the base encoding has none."""
        return None

    def write(self, conn: Connection, rect: Rectangle) -> None:
        """Encode the payload of ``rect``; the base encoding has none."""
        return None

    def supported(self, conn: Connection) -> bool:
        """Tell whether this encoding can be written to ``conn``."""
        return type(self).wire_supported

    def reset(self) -> None:
        """Drop any per-stream decoder state."""
        return None


class Connection:
    """A VNC connection over a binary stream, with buffered writes."""

    def __init__(
        self,
        stream: BinaryIO,
        *,
        pixel_format: PixelFormat | None = None,
        encodings: Iterable[Encoding] = (),
        width: int = 0,
        height: int = 0,
        config: Any = None,
    ) -> None:
        self.stream = stream
        self.pixel_format = pixel_format if pixel_format is not None else PixelFormat()
        self.encodings: list[Encoding] = list(encodings)
        self.width = width
        self.height = height
        self.config = config
        self.protocol = ""
        self.desktop_name = b""
        self.color_map: list[Any] = []
        self.security_handler: Any = None
        self.canvas: Any = None
        self.connected = True
        self._out = bytearray()
        self._error_handlers: list[Callable[[BaseException], None]] = []

    def read(self, n: int) -> bytes:
        """Read exactly ``n`` bytes, raising EOFError if the stream ends first."""
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = self.stream.read(remaining)
            if not chunk:
                raise EOFError(f"expected {n} bytes, got {n - remaining}")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        """Buffer ``data``; it reaches the stream on flush()."""
        self._out += data
        return len(data)

    def flush(self) -> None:
        if self._out:
            self.stream.write(bytes(self._out))
            self._out.clear()
        stream_flush = getattr(self.stream, "flush", None)
        if stream_flush is not None:
            stream_flush()

    def get_enc_instance(self, enc_type: EncodingType) -> Encoding | None:
        """Return the first configured encoding of the given type, if any."""
        return next((enc for enc in self.encodings if enc.enc_type == enc_type), None)

    def reset_all_encodings(self) -> None:
        for enc in self.encodings:
            enc.reset()

    def add_error_handler(self, handler: Callable[[BaseException], None]) -> None:
        self._error_handlers.append(handler)

    def on_fatal_error(self, error: BaseException) -> None:
        for handler in self._error_handlers:
            handler(error)

    def close(self) -> None:
        self.connected = False
        self.stream.close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def set_bit(n: int, pos: int) -> int:
    return (n | (1 << pos)) & 0xFF


def clr_bit(n: int, pos: int) -> int:
    return n & ~(1 << pos) & 0xFF


def has_bit(n: int, pos: int) -> bool:
    return (n & (1 << pos)) > 0


def get_bit(n: int, pos: int) -> int:
    return n & (1 << pos) & 0xFF