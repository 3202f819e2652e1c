"""
Constants, logging, error types, URL I/O and filename helpers shared by the
catalog, transcode and pipeline packages.
"""

from .constants import (
    CODEC_PRESETS,
    CONTAINER_FORMATS,
    DEFAULT_FORMATS,
    DEFAULT_PRESET,
    MEDIA_METHOD_FETCH,
    MEDIA_TYPE_VIDEO,
    STATUS_ENCODED,
    STATUS_FAIL,
    STATUS_REUSED,
    THUMBNAIL_HEIGHT,
)
from .logger import LogLevel

__all__ = [
    "CODEC_PRESETS",
    "CONTAINER_FORMATS",
    "DEFAULT_FORMATS",
    "DEFAULT_PRESET",
    "MEDIA_METHOD_FETCH",
    "MEDIA_TYPE_VIDEO",
    "STATUS_ENCODED",
    "STATUS_FAIL",
    "STATUS_REUSED",
    "THUMBNAIL_HEIGHT",
    "LogLevel",
]
