"""Decoders for VNC framebuffer encodings onto an RGBA canvas, and ffmpeg-based video recording of frames."""

__version__ = "0.1.0"