# vncrec

`vncrec` decodes the rectangle encodings that a VNC (RFB) server sends and
paints them onto an in-memory RGBA canvas. It can also pipe frames, as
binary PPM images, into an `ffmpeg` process to record a session as video.

## Installation

```
pip install vncrec
```

The package depends on Pillow. Recording video also requires an `ffmpeg`
binary.

## Modules

- `vncrec.types`: protocol basics.
  - `Button` is a flag enum of pointer buttons. `mask(button)` returns it as
    a byte.
  - `EncodingType` lists the known encoding numbers.
  - `PixelFormat` is a dataclass. Its default is 32 bpp, depth 24,
    little-endian true colour.
  - `Rectangle` has `x`, `y`, `width`, `height` and `area()`.
  - `Encoding` is the base class of all encodings. It has `read`, `write`,
    `supported` and `reset`.
  - `Connection` wraps a binary stream. `read(n)` reads exactly `n` bytes and
    raises `EOFError` if the stream ends first. `write` buffers data until
    `flush()`. `get_enc_instance(enc_type)` returns the first configured
    encoding of that type.
  - `set_bit`, `clr_bit`, `has_bit` and `get_bit` are bit helpers.
  - `ProtocolError` is raised for data that cannot be decoded.
- `vncrec.canvas`: the drawing surface and the wire readers.
  - `RGBAImage` has `set` and `at`. Writes outside the image are dropped.
    `to_pil()` and `from_pil()` convert to and from Pillow images.
  - `VncCanvas` is an `RGBAImage` with extra features:
    - `set_changed(rect)` records the 16×16 blocks that a rectangle touches
      in `changed`, as `(block_x, block_y)` pairs. `reset()` clears them.
    - It can draw a software cursor over the frame with `paint_cursor()`
      and remove it with `remove_cursor()`. This only happens when
      `draw_cursor` is true.
  - `Bounds` and `Color` describe areas and pixel values.
  - `fill_rect`, `draw_image`, `make_rect` and `make_rect_from_vnc_rect` are
    drawing helpers.
  - `read_bytes`, `read_color`, `decode_raw` and
    `read_uint8`/`read_uint16`/`read_uint32` read from the wire. Multi-byte
    integers are big-endian.
- Encodings:
  - `vncrec.basic`:
    - `RawEncoding`, `CopyRectEncoding` and `RREEncoding`.
    - `CoRREEncoding`, which keeps its payload as bytes.
    - `ZLibEncoding`, which keeps one zlib stream across rectangles until
      `reset()`.
    - `DesktopNamePseudoEncoding`, `DesktopSizePseudoEncoding`,
      `CursorPosPseudoEncoding` and `XCursorPseudoEncoding`.
  - `vncrec.cursor`: `CursorPseudoEncoding`. It installs the cursor image
    and its mask on a `VncCanvas`.
  - `vncrec.hextile`: `HextileEncoding`. Raw tiles are decoded by the raw
    encoding that is configured on the connection.
  - `vncrec.aten`: `AtenHermon` and `AtenHermonSubrect`.
  - `vncrec.tight`: `TightEncoding` handles fill, JPEG, and the copy,
    palette and gradient filters, with four persistent zlib streams. The
    module also has these helpers: `read_tight_length`,
    `write_tight_length`, `read_tight_cc`, `write_tight_cc` and
    `calc_tight_bytes_per_pixel`.
  - `vncrec.tightpng`: `TightPngEncoding` handles fill and PNG rectangles.
    It can both read and write them.
  - `vncrec.zrle`: `ZRLEEncoding` handles 64×64 tiles in the raw, solid,
    packed-palette, plain-RLE and palette-RLE forms. The module also has
    `is_cpixel_specific`, `calc_bytes_per_cpixel`, `read_cpixel` and
    `read_run_length`.
- `vncrec.ppm`: `encode_ppm(stream, img)` writes an `RGBAImage` or a Pillow
  image as one P6 frame.
- `vncrec.video`: encoders that feed PPM frames to `ffmpeg`. They are
  described under "Recording video" below.

## Decoding a rectangle

Each encoding reads its payload from a `Connection` and paints it onto the
image that it was given:

```python
import io

from vncrec.basic import RawEncoding
from vncrec.canvas import VncCanvas
from vncrec.types import Connection, PixelFormat, Rectangle

canvas = VncCanvas(4, 4)
raw = RawEncoding()
raw.set_target_image(canvas)

# One 32-bit little-endian pixel: blue=0x30, green=0x20, red=0x10.
conn = Connection(io.BytesIO(bytes([0x30, 0x20, 0x10, 0x00])),
                  pixel_format=PixelFormat(), encodings=[raw])
raw.read(conn, Rectangle(x=1, y=1, width=1, height=1))
print(canvas.at(1, 1))   # Color(r=16, g=32, b=48, a=255)
```

## Recording video

`FFmpegImageEncoder` is the base class. It has the following subclasses:

| Class                 | Codec        | File extension |
|-----------------------|--------------|----------------|
| `X264ImageEncoder`    | `libx264`    | `.mp4`         |
| `HuffYuvImageEncoder` | `huffyuv`    | `.avi`         |
| `QTRLEImageEncoder`   | `qtrle`      | `.mov`         |
| `VP8ImageEncoder`     | `libvpx`     | `.webm`        |
| `DV9ImageEncoder`     | `libvpx-vp9` | `.mp4`         |

The encoder adds the extension to the file name if the name does not already
end with it. A `framerate` of 0 becomes 12.

`build_command(name)` returns the ffmpeg command line. `init(name, output)`
stores that command and the output target.

`run(name, output)` starts `ffmpeg` and blocks until it exits. It raises
`subprocess.CalledProcessError` when ffmpeg exits with a non-zero code.
`output` is passed as ffmpeg's stdout and stderr; `None` means they are
inherited. Frames are therefore fed from another thread while `run` is in
progress:

```python
import threading

from vncrec.video import X264ImageEncoder

encoder = X264ImageEncoder(ffmpeg_bin_path="/usr/bin/ffmpeg", framerate=12)
worker = threading.Thread(target=encoder.run, args=("session", None))
worker.start()
# ... once ffmpeg is running, for each frame:
encoder.encode(canvas)
encoder.close()
```

`encode` does nothing until ffmpeg's input is available, and it does nothing
after `close()`.

Differences between the encoders:

- `run` checks that `ffmpeg_bin_path` exists and raises `FileNotFoundError`
  if it does not. `X264ImageEncoder` also tries the path with `.exe`
  appended, and `QTRLEImageEncoder` skips the check.
- `VP8ImageEncoder` and `DV9ImageEncoder` always launch `./ffmpeg` from the
  working directory.
- Closing:
  - `QTRLEImageEncoder.close()` also interrupts ffmpeg and closes its input.
  - `DV9ImageEncoder.close()` leaves the encoder accepting frames.
  - For the others, `close()` only stops `encode`.
- `QTRLEImageEncoder` re-raises errors from `encode`. The others log them.

## What the package does not do

`vncrec` does not connect to a VNC server. It has no handshake, no
authentication and no message loop that reads framebuffer updates and
dispatches rectangles to the encodings. You have to supply a `Connection`
over a stream you have opened yourself, and call each encoding's `read`
yourself.

The package also has no command-line tool. Video is written only through an
external `ffmpeg` process.