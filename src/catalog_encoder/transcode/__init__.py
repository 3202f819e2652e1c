"""Video transcoding for catalog renditions.

This package provides:
- formats: parsing of the container:codec:quality@WxH format spec
- core: HandBrake encode options, command building, encoding and output probing
- thumbnail: ffmpeg single-frame thumbnail extraction
"""

from .core import (
    HandBrakeTranscoder,
    TranscodeOptions,
    VideoInfo,
    build_handbrake_cmd,
    ffprobe_video_info,
    parse_display_dimensions,
    probe_output,
)
from .formats import parse_format, parse_formats
from .thumbnail import FfmpegThumbnailer, build_thumbnail_cmd

__all__ = [
    # Formats
    "parse_format",
    "parse_formats",
    # Encoding
    "HandBrakeTranscoder",
    "TranscodeOptions",
    "VideoInfo",
    "build_handbrake_cmd",
    "ffprobe_video_info",
    "parse_display_dimensions",
    "probe_output",
    # Thumbnails
    "FfmpegThumbnailer",
    "build_thumbnail_cmd",
]
