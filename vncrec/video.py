"""Video encoders that pipe framebuffer frames as PPM images into ffmpeg."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from typing import Any, BinaryIO

from vncrec.ppm import encode_ppm

log = logging.getLogger(__name__)

DEFAULT_FRAMERATE = 12
_PPM_PIPE_INPUT = ("-f", "image2pipe", "-vcodec", "ppm")


class FFmpegImageEncoder:
    """Base of the ffmpeg-backed encoders.

    ``run`` starts ffmpeg and blocks until it exits; ``encode`` is called
    from another thread to feed it frames through its standard input.

    Subclasses describe their command line with ``codec``, ``input_options``
    (which may refer to ``{rate}``) and ``output_options``.
    """

    extension = ".mp4"
    codec = "libx264"
    input_options = "-r {rate} -an -y"
    output_options = "-threads 8 -preset veryfast -g 250 -crf 37"
    # Some encoders always launch ffmpeg from the working directory.
    fixed_binary: str | None = None
    check_binary = True
    try_exe_suffix = False
    raise_encode_errors = False

    def __init__(self, ffmpeg_bin_path: str = "ffmpeg", framerate: int = 0) -> None:
        self.ffmpeg_bin_path = ffmpeg_bin_path
        self.framerate = framerate
        self.input: BinaryIO | None = None
        self.closed = False
        self.command: list[str] = []
        self.output: Any = None
        self._process: subprocess.Popen[bytes] | None = None

    def build_command(self, video_file_name: str) -> list[str]:
        """Return the ffmpeg command line that writes ``video_file_name``."""
        if self.framerate == 0:
            self.framerate = DEFAULT_FRAMERATE
        if not video_file_name.endswith(self.extension):
            video_file_name += self.extension
        binary = self.fixed_binary if self.fixed_binary is not None else self.ffmpeg_bin_path
        return [
            binary,
            *_PPM_PIPE_INPUT,
            *self.input_options.format(rate=self.framerate).split(),
            "-i",
            "-",
            "-vcodec",
            self.codec,
            *self.output_options.split(),
            video_file_name,
        ]

    def init(self, video_file_name: str, output: Any = None) -> list[str]:
        """Prepare the command and where its output goes; return the command."""
        self.command = self.build_command(video_file_name)
        self.output = output
        return self.command

    def _locate_binary(self) -> None:
        if not self.check_binary or os.path.exists(self.ffmpeg_bin_path):
            return
        if self.try_exe_suffix and os.path.exists(self.ffmpeg_bin_path + ".exe"):
            self.ffmpeg_bin_path += ".exe"
            return
        log.error("encoder file doesn't exist in path: %s", self.ffmpeg_bin_path)
        raise FileNotFoundError(f"encoder file doesn't exist in path: {self.ffmpeg_bin_path}")

    def run(self, video_file_name: str, output: Any = None) -> None:
        """Start ffmpeg and wait for it; raise if it cannot start or fails."""
        self._locate_binary()
        command = self.init(video_file_name, output)
        log.debug("launching binary: %s", command)
        with subprocess.Popen(
            command, stdin=subprocess.PIPE, stdout=output, stderr=output
        ) as process:
            self._process = process
            self.input = process.stdin
            returncode = process.wait()
        if returncode != 0:
            log.error("error while running ffmpeg: %s exit code %d", command, returncode)
            raise subprocess.CalledProcessError(returncode, command)

    def encode(self, img: Any) -> None:
        """Write one frame to ffmpeg, unless it is not running or is closed."""
        if self.input is None or self.closed:
            return
        try:
            encode_ppm(self.input, img)
        except (OSError, ValueError, TypeError) as exc:
            log.error("error while encoding image: %s", exc)
            if self.raise_encode_errors:
                raise

    def close(self) -> None:
        """Stop accepting frames."""
        self.closed = True


class VP8ImageEncoder(FFmpegImageEncoder):
    """WebM output with the VP8 codec."""

    extension = ".webm"
    fixed_binary = "./ffmpeg"
    codec = "libvpx"
    input_options = "-vsync 2 -r 5 -probesize 10000000 -an -y"
    output_options = (
        "-b:v 0.5M -threads 8 -quality good -cpu-used -16 "
        "-minrate 0.2M -maxrate 0.7M -bufsize 50M -g 180 -keyint_min 180 "
        "-rc_lookahead 20 -qmax 51 -qmin 3"
    )


class DV9ImageEncoder(FFmpegImageEncoder):
    """MP4 output with the VP9 codec in realtime mode."""

    extension = ".mp4"
    fixed_binary = "./ffmpeg"
    codec = "libvpx-vp9"
    input_options = "-r 5"
    output_options = (
        "-b:v 1M -threads 8 -cpu-used -8 -deadline realtime "
        "-maxrate 2.5M -bufsize 10M -g 120 -qmax 51 -qmin 11"
    )

    def close(self) -> None:
        """Leave the encoder open: frames keep being accepted after closing."""
        self.closed = False


class HuffYuvImageEncoder(FFmpegImageEncoder):
    """Lossless HuffYUV in AVI; produces large files."""

    extension = ".avi"
    codec = "huffyuv"
    input_options = "-r 12 -an -y"
    output_options = "-threads 7 -preset veryfast -maxrate 0.5M -bufsize 50M -g 250 -crf 34"


class QTRLEImageEncoder(FFmpegImageEncoder):
    """Lossless QuickTime RLE in a .mov file."""

    extension = ".mov"
    codec = "qtrle"
    output_options = "-threads 7 -preset veryfast -maxrate 0.5M -bufsize 50M -g 250 -crf 34"
    check_binary = False
    raise_encode_errors = True

    def close(self) -> None:
        """Stop accepting frames, interrupt ffmpeg and close its input."""
        self.closed = True
        process = self._process
        if process is not None and process.poll() is None:
            try:
                process.send_signal(signal.SIGINT)
            except (OSError, ValueError) as exc:
                log.error("cannot interrupt ffmpeg: %s", exc)
        if self.input is not None:
            self.input.close()


class X264ImageEncoder(FFmpegImageEncoder):
    """MP4 output with the H.264 codec."""

    extension = ".mp4"
    codec = "libx264"
    try_exe_suffix = True