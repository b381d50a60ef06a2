[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vncrec"
version = "0.1.0"
description = "Decoders for VNC framebuffer encodings and ffmpeg-based recording of frames to video"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["vnc", "rfb", "framebuffer", "video", "recording", "ffmpeg", "ppm"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video :: Capture",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vncrec"]

[tool.pytest.ini_options]
addopts = "-ra"
