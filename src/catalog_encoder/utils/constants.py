"""
Constants and configuration settings for catalog encoding.

This module contains the defaults used across the pipeline: the default target formats,
the external tool binaries, encoder presets per codec, and the HandBrake container names.
Values that depend on the machine can be overridden through environment variables or a
local .env file.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Target formats, comma separated [container]:[codec]:[quality]@[width]x[height]
DEFAULT_FORMATS = os.getenv("CATALOG_ENCODER_FORMATS", "mp4:x264:22.0@512x288,webm:vp9:32.0@1024x576")

# External tools
HANDBRAKE_BIN = os.getenv("HANDBRAKE_BIN", "HandBrakeCLI")
FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")
FFPROBE_BIN = os.getenv("FFPROBE_BIN", "ffprobe")

# Where downloaded sources and intermediate encodes live (None = system temp dir)
TEMP_DIR = os.getenv("CATALOG_ENCODER_TEMP_DIR") or None
TEMP_PREFIX = "catalog-encoder"

# Optional log file mirroring console output
LOG_FILE = os.getenv("CATALOG_ENCODER_LOG_FILE") or None

# Network settings
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "60"))
DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Encoder presets; vp9 at veryslow is far too slow to be practical
CODEC_PRESETS = {
    "vp9": "slow",
    "x264": "veryslow",
}
DEFAULT_PRESET = "veryslow"

# Container name -> HandBrake --format value
CONTAINER_FORMATS = {
    "mp4": "av_mp4",
    "m4v": "av_mp4",
    "mkv": "av_mkv",
    "webm": "av_webm",
}

# Fixed quality knobs applied to every encode
DENOISE_PRESET = "strong"

# Thumbnails
THUMBNAIL_HEIGHT = 576
THUMBNAIL_EXTENSION = "webp"

# Seconds between transcode progress log lines
PROGRESS_INTERVAL = 10

# Media record settings
MEDIA_TYPE_VIDEO = "video"
MEDIA_METHOD_FETCH = "fetch"

# Processing status codes
STATUS_ENCODED = "ENCODED"
STATUS_REUSED = "REUSED"
STATUS_FAIL = "FAIL"
